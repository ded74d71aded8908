"""
Gatekeeper — Safety Package
============================

What:  Admission policy: URL blocklist, rate limiting with escalation to a
       timed ban, and the background sweep that reclaims stale state.
"""

from gatekeeper.safety.access_log import Banned, IPBlocked, URLBlocked, log_access
from gatekeeper.safety.models import BanRecord, RateCounter, SweepReport
from gatekeeper.safety.safety import Safety
from gatekeeper.safety.store import BanRegistry, RateTracker

__all__ = [
    "Banned",
    "BanRecord",
    "BanRegistry",
    "IPBlocked",
    "RateCounter",
    "RateTracker",
    "Safety",
    "SweepReport",
    "URLBlocked",
    "log_access",
]
