"""
Gatekeeper — API Schemas
=========================

What:  Pydantic response models for the gatekeeper's own endpoints.
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Returned by GET /health for container probes and monitoring."""

    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    sweeping: bool = Field(description="Whether the background sweep task is running")
    rate_counters: int = Field(ge=0, description="Live (client, path) rate counters")
    bans: int = Field(ge=0, description="Ban records currently held")
    uptime_seconds: float = Field(description="Seconds since service started")
