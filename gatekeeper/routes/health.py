"""
Gatekeeper — Health Check Route
================================

What:  Liveness endpoint reporting the gatekeeper's own state.
How:   Reads Safety's store sizes and sweep status from app.state. The
       request still passes through the gatekeeper like any other, so a
       banned client gets its 403/429 here too.

Status levels:
    healthy   sweep task running
    degraded  sweep task stopped (state will grow until it restarts)
"""

import time

from fastapi import APIRouter, Request

from gatekeeper import __version__
from gatekeeper.schemas import HealthResponse

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    safety = request.app.state.gatekeeper.safety
    stats = safety.stats()
    return HealthResponse(
        status="healthy" if safety.sweeping else "degraded",
        version=__version__,
        sweeping=safety.sweeping,
        rate_counters=stats["rate_counters"],
        bans=stats["bans"],
        uptime_seconds=round(time.time() - _start_time, 2),
    )
