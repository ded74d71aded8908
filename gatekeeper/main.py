"""
Gatekeeper — FastAPI Application Factory
=========================================

What:  Builds the ASGI application: a FastAPI shell with the gatekeeper in
       front, a /health route, and the delegate application mounted at "/".
How:   create_app() returns a configured FastAPI instance. Uvicorn serves
       the module-level `app` (uvicorn gatekeeper.main:app, or
       python -m gatekeeper).

    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                        │
    │                                                       │
    │  Middleware Chain:                                    │
    │  ┌────────────┐ ┌──────────────────────────────────┐  │
    │  │ Request ID │→│ Gatekeeper (wildcard → path mws)  │  │
    │  └────────────┘ └──────────────────────────────────┘  │
    │                                                       │
    │  Routes:                                              │
    │  ┌─────────────┐ ┌─────────────────────────────────┐  │
    │  │ GET /health │ │ delegate (mounted at "/")        │  │
    │  └─────────────┘ └─────────────────────────────────┘  │
    └──────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → gatekeeper.startup() (sweep task, "ready" event)
    Shutdown: gatekeeper.shutdown() (cancel sweep, clear state)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from gatekeeper import __version__
from gatekeeper.config import Settings, settings as default_settings
from gatekeeper.gatekeeper import Gatekeeper
from gatekeeper.http import INTERNAL_SERVER_ERROR, ResponseSink, write_and_end
from gatekeeper.middleware.request_id import RequestIDMiddleware, request_id_var
from gatekeeper.routes import health

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Component loggers:
        gatekeeper.access       policy denials (WARNING)
        gatekeeper.maintenance  sweep chatter (INFO, only when DEBUG=true)
        gatekeeper.*            everything else, by module
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Last line of defence for errors raised outside the gatekeeper dispatch.

    Answers with the same plain-text 500 the gatekeeper uses; the stack
    trace goes to the log only.
    """

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> Response:
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=exc)
        return await write_and_end(ResponseSink(), 500, INTERNAL_SERVER_ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    delegate: Optional[ASGIApp] = None,
    settings: Optional[Settings] = None,
    gatekeeper: Optional[Gatekeeper] = None,
) -> FastAPI:
    """
    Create the gatekeeper application.

    Args:
        delegate:   ASGI app that serves admitted requests, mounted at "/".
                    Without one only /health exists (everything else 404s
                    after admission).
        settings:   Configuration; the module-level settings if omitted.
        gatekeeper: Pre-built Gatekeeper (e.g. with extra handlers or
                    listeners); built from `settings` if omitted.

    The Gatekeeper is reachable as app.state.gatekeeper.
    """
    cfg = settings or default_settings
    gate = gatekeeper or Gatekeeper(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(cfg.log_level)
        logger.info("Gatekeeper %s starting up...", __version__)
        await gate.startup()

        yield

        logger.info("Gatekeeper shutting down...")
        await gate.shutdown()
        logger.info("Shutdown complete.")

    app = FastAPI(
        title="Gatekeeper",
        description="Admission control (blocklist, rate limiting, bans) in front of an ASGI app.",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.gatekeeper = gate

    # Middleware executes in reverse order of addition: Request ID runs first.
    app.add_middleware(BaseHTTPMiddleware, dispatch=gate.dispatch)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    if delegate is not None:
        app.mount("/", delegate)

    return app


app = create_app()
