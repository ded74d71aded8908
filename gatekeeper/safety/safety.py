"""
Gatekeeper — Safety (Admission Policy Engine)
==============================================

What:  Decides whether a client may reach the application: static URL
       blocklist, per-(client, path) rate limiting that escalates to a
       timed ban, and a periodic sweep that reclaims stale state.
How:   One BanRegistry and one RateTracker, both guarded by a single
       asyncio.Lock. The increment in is_rate_limited and the whole sweep
       pass run under that lock, so two concurrent requests from one client
       can never both read the same count.

Failure policy:
    is_blocked      fails CLOSED: an error means "blocked".
    is_rate_limited fails OPEN:   an error means "not limited".
    is_allowed      answers 500 on any error; it never admits by accident.
    sweep loop      logs the error and runs again on the next tick.

Lifecycle:
    The sweep runs as an asyncio.Task, so it needs a running loop:
        safety = Safety()
        safety.start()          # inside the loop (ASGI lifespan)
        ...
        await safety.cleanup()  # idempotent
    or, equivalently, `async with Safety() as safety: ...`.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Union

from starlette.requests import Request
from starlette.responses import Response

from gatekeeper.config import Settings, settings as default_settings
from gatekeeper.http import (
    ACCESS_DENIED,
    INTERNAL_SERVER_ERROR,
    TOO_MANY_REQUESTS,
    ResponseSink,
    client_identity,
    write_and_end,
)
from gatekeeper.safety.access_log import Banned, IPBlocked, URLBlocked, log_access
from gatekeeper.safety.clock import monotonic_ms
from gatekeeper.safety.models import BanRecord, RateCounter, SweepReport
from gatekeeper.safety.store import BanRegistry, RateTracker

logger = logging.getLogger(__name__)
maintenance_logger = logging.getLogger("gatekeeper.maintenance")


class Safety:
    """
    Admission policy engine.

    Args:
        settings: Limits and policy lists; the module-level settings if omitted.
        clock:    Millisecond clock; monotonic by default, injectable for tests.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        cfg = settings or default_settings
        self.rate_limit = cfg.rate_limit
        self.inactivity_length = cfg.inactivity_length
        self.ban_length = cfg.ban_length
        self.sweep_interval = cfg.sweep_interval
        self.debug = cfg.debug

        self.url_blocklist = cfg.url_blocklist_set
        self.denied_methods = cfg.denied_methods_set
        self.allowlist = cfg.allowlist_set

        self._clock = clock
        self._bans = BanRegistry()
        self._tracker = RateTracker(cap=cfg.tracker_cap)
        self._lock = asyncio.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    # ══════════════════════════════════════════════════════════════════════
    # Checks
    # ══════════════════════════════════════════════════════════════════════

    async def is_blocked(self, method: str, client: str, path: str) -> bool:
        try:
            if path in self.url_blocklist:
                log_access(URLBlocked(method, client, path))
                return True

            now = self._clock()
            async with self._lock:
                ban = self._bans.active_ban(client, now)

            if ban is not None:
                log_access(IPBlocked(method, client, path))
                return True

            return False
        except Exception:
            logger.exception("Block check failed for %s %s; treating as blocked", client, path)
            return True

    async def set_ip_block(
        self, method: str, client: str, path: str, ban: BanRecord
    ) -> bool:
        try:
            async with self._lock:
                self._bans.set(client, BanRecord(expiry=ban.expiry, reason=ban.reason))
            log_access(Banned(method, client, path, expiry=ban.expiry, reason=ban.reason))
            return True
        except Exception:
            logger.exception("Failed to record ban for %s", client)
            return False

    async def is_rate_limited(self, method: str, client: str, path: str) -> bool:
        try:
            now = self._clock()
            async with self._lock:
                ban = self._bans.active_ban(client, now)
                count = None
                if ban is None:
                    count = self._tracker.hit(client, path, now, self.inactivity_length)

            if ban is not None:
                log_access(Banned(method, client, path, expiry=ban.expiry))
                return True

            if count > self.rate_limit:
                return await self.set_ip_block(
                    method,
                    client,
                    path,
                    BanRecord(
                        expiry=now + self.ban_length,
                        reason=f"Exceeded {self.rate_limit} requests to {path}",
                    ),
                )

            return False
        except Exception:
            logger.exception("Rate limit check failed for %s %s; letting it through", client, path)
            return False

    def is_exempt(self, client: str) -> bool:
        return client in self.allowlist

    async def is_allowed(
        self, request: Request, sink: ResponseSink
    ) -> Union[bool, Response]:
        """
        Combined admission check.

        Order: method policy → allowlist → blocklist/ban (403) → rate limit (429).
        Returns True to admit, otherwise the early response written to `sink`.
        """
        try:
            method = request.method
            client = client_identity(request)
            path = request.url.path

            if method.upper() in self.denied_methods:
                logger.info("Refused %s %s from %s by method policy", method, path, client)
                return await write_and_end(sink, 403, ACCESS_DENIED)

            if self.is_exempt(client):
                return True

            if await self.is_blocked(method, client, path):
                return await write_and_end(sink, 403, ACCESS_DENIED)

            if await self.is_rate_limited(method, client, path):
                return await write_and_end(sink, 429, TOO_MANY_REQUESTS)

            return True
        except Exception:
            logger.exception("Admission check failed")
            return await write_and_end(sink, 500, INTERNAL_SERVER_ERROR)

    # ══════════════════════════════════════════════════════════════════════
    # Middleware handlers
    # ══════════════════════════════════════════════════════════════════════

    def mw_admission(self):
        """Single handler running the whole is_allowed check."""

        async def admission(request: Request, sink: ResponseSink):
            verdict = await self.is_allowed(request, sink)
            return None if verdict is True else verdict

        return admission

    def mw_method_policy(self):
        """Handler refusing configured methods (default POST) with 403."""

        async def method_policy(request: Request, sink: ResponseSink):
            if request.method.upper() in self.denied_methods:
                logger.info(
                    "Refused %s %s from %s by method policy",
                    request.method,
                    request.url.path,
                    client_identity(request),
                )
                return await write_and_end(sink, 403, ACCESS_DENIED)
            return None

        return method_policy

    def mw_block_list(self):
        """Handler answering 403 for blocklisted paths and banned clients."""

        async def block_list(request: Request, sink: ResponseSink):
            client = client_identity(request)
            if self.is_exempt(client):
                return None
            if await self.is_blocked(request.method, client, request.url.path):
                return await write_and_end(sink, 403, ACCESS_DENIED)
            return None

        return block_list

    def mw_rate_limit(self):
        """Handler answering 429 once a client exceeds the rate limit."""

        async def rate_limit(request: Request, sink: ResponseSink):
            client = client_identity(request)
            if self.is_exempt(client):
                return None
            if await self.is_rate_limited(request.method, client, request.url.path):
                return await write_and_end(sink, 429, TOO_MANY_REQUESTS)
            return None

        return rate_limit

    # ══════════════════════════════════════════════════════════════════════
    # Maintenance
    # ══════════════════════════════════════════════════════════════════════

    async def sweep(self) -> SweepReport:
        """
        One maintenance pass.

        1. Drop counters idle for longer than INACTIVITY_LENGTH.
        2. Drop bans whose expiry has passed.
        3. If the tracker is still above its cap, evict the single oldest counter.
        """
        now = self._clock()
        if self.debug:
            maintenance_logger.info("Performing rate limit bucket maintenance...")

        async with self._lock:
            stale = self._tracker.sweep_stale(now, self.inactivity_length)
            expired = self._bans.sweep_expired(now)
            evicted = self._tracker.evict_oldest() if self._tracker.over_cap() else None

        report = SweepReport(stale_counters=stale, expired_bans=expired, evicted=evicted)
        if self.debug:
            maintenance_logger.info(
                "Swept %d stale counters, %d expired bans, evicted %s",
                stale,
                expired,
                evicted or "nothing",
            )
        return report

    async def _sweep_loop(self) -> None:
        interval = self.sweep_interval / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                if self.debug:
                    maintenance_logger.info("Grabbing a broom...")
                await self.sweep()
            except Exception:
                logger.exception("Sweep failed; retrying in %.1fs", interval)

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Start the periodic sweep. Must be called from a running event loop."""
        if self.sweeping:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.debug("Sweep started (every %d ms)", self.sweep_interval)

    async def cleanup(self) -> bool:
        """Stop the sweep and forget all bans and counters. Safe to call repeatedly."""
        try:
            if self.debug:
                maintenance_logger.info("Cleaning up timers and data...")

            task, self._sweep_task = self._sweep_task, None
            if task is not None and not task.done():
                task.cancel()
                await asyncio.wait({task})

            async with self._lock:
                self._tracker.clear()
                self._bans.clear()
            return True
        except Exception:
            logger.exception("Safety cleanup failed")
            return False

    async def __aenter__(self) -> "Safety":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()

    # ══════════════════════════════════════════════════════════════════════
    # Introspection
    # ══════════════════════════════════════════════════════════════════════

    def ban_for(self, client: str) -> Optional[BanRecord]:
        return self._bans.get(client)

    def counter_for(self, client: str, path: str) -> Optional[RateCounter]:
        return self._tracker.get(client, path)

    def stats(self) -> Dict[str, int]:
        return {"rate_counters": len(self._tracker), "bans": len(self._bans)}
