"""
Gatekeeper — Ban Registry & Rate Tracker
=========================================

What:  In-memory stores for bans (client → BanRecord) and rate counters
       ("client:path" → RateCounter).
How:   Plain dicts wrapped in small classes. Neither class locks; both are
       owned by Safety, which serializes every access behind one
       asyncio.Lock. Callers outside Safety never see the dicts.

Eviction:
    RateTracker.evict_oldest() is a crude bound, not an LRU. It does one
    linear scan and removes exactly the counter with the smallest
    last_seen. Dicts keep insertion order, so on a tie the first
    encountered key goes.
"""

from typing import Dict, Optional

from gatekeeper.safety.models import BanRecord, RateCounter

DEFAULT_TRACKER_CAP = 10_000


def counter_key(client: str, path: str) -> str:
    return client + ":" + path


class BanRegistry:
    """Mapping from client identity to its ban record."""

    def __init__(self) -> None:
        self._bans: Dict[str, BanRecord] = {}

    def get(self, client: str) -> Optional[BanRecord]:
        return self._bans.get(client)

    def active_ban(self, client: str, now: int) -> Optional[BanRecord]:
        """Return the client's ban if it is still in force. Expired records count as no ban."""
        record = self._bans.get(client)
        if record is not None and record.is_active(now):
            return record
        return None

    def set(self, client: str, record: BanRecord) -> None:
        # Overwrite, never merge.
        self._bans[client] = record

    def sweep_expired(self, now: int) -> int:
        expired = [client for client, record in self._bans.items() if record.expiry <= now]
        for client in expired:
            del self._bans[client]
        return len(expired)

    def clear(self) -> None:
        self._bans.clear()

    def __len__(self) -> int:
        return len(self._bans)

    def __contains__(self, client: object) -> bool:
        return client in self._bans


class RateTracker:
    """Mapping from (client, path) to its hit counter."""

    def __init__(self, cap: int = DEFAULT_TRACKER_CAP) -> None:
        self.cap = cap
        self._counters: Dict[str, RateCounter] = {}

    def hit(self, client: str, path: str, now: int, inactivity_length: int) -> int:
        """
        Record one request and return the updated count.

        A counter that went stale without being swept starts a new window.
        """
        key = counter_key(client, path)
        counter = self._counters.get(key)
        if counter is None:
            counter = RateCounter(count=0, last_seen=now)
            self._counters[key] = counter
        elif counter.is_stale(now, inactivity_length):
            counter.count = 0
        counter.count += 1
        counter.last_seen = now
        return counter.count

    def get(self, client: str, path: str) -> Optional[RateCounter]:
        counter = self._counters.get(counter_key(client, path))
        if counter is None:
            return None
        return RateCounter(count=counter.count, last_seen=counter.last_seen)

    def sweep_stale(self, now: int, inactivity_length: int) -> int:
        stale = [
            key for key, counter in self._counters.items()
            if counter.is_stale(now, inactivity_length)
        ]
        for key in stale:
            del self._counters[key]
        return len(stale)

    def over_cap(self) -> bool:
        return len(self._counters) > self.cap

    def evict_oldest(self) -> Optional[str]:
        oldest_key: Optional[str] = None
        oldest_time = float("inf")
        for key, counter in self._counters.items():
            if counter.last_seen < oldest_time:
                oldest_key = key
                oldest_time = counter.last_seen

        if oldest_key is not None:
            del self._counters[oldest_key]
        return oldest_key

    def clear(self) -> None:
        self._counters.clear()

    def __len__(self) -> int:
        return len(self._counters)

    def __contains__(self, key: object) -> bool:
        return key in self._counters
