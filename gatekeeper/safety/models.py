"""
Gatekeeper — Safety State Records
==================================

What:  The small records held by the ban registry and rate tracker.
How:   Plain dataclasses. BanRecord is frozen so a record read from the
       registry can be handed out without exposing the stored state.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BanRecord:
    """A ban on one client identity, honoured only while `expiry > now`."""

    expiry: int
    reason: str

    def is_active(self, now: int) -> bool:
        return self.expiry > now


@dataclass
class RateCounter:
    """Hit count for one (client, path) pair within the current inactivity window."""

    count: int
    last_seen: int

    def is_stale(self, now: int, inactivity_length: int) -> bool:
        return now - self.last_seen > inactivity_length


@dataclass(frozen=True)
class SweepReport:
    """Outcome of one maintenance pass."""

    stale_counters: int = 0
    expired_bans: int = 0
    evicted: Optional[str] = None
