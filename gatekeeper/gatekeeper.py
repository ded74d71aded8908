"""
Gatekeeper — Composition Root
==============================

What:  Puts Safety and the middleware registry in front of a delegate
       application and dispatches every request through them.
How:   Gatekeeper.dispatch has the signature Starlette's BaseHTTPMiddleware
       expects, so the gatekeeper is installed with

           app.add_middleware(BaseHTTPMiddleware, dispatch=gatekeeper.dispatch)

       or wrapped around any ASGI app with gatekeeper.wrap(app).

Admission modes (ADMISSION_MODE):
    middleware  three wildcard handlers: method policy → block list → rate limit
    combined    one wildcard handler calling Safety.is_allowed

Both run the same checks in the same order before the delegate.

Events:
    "ready"  startup() finished and the sweep is running
    "error"  a request failed inside the gatekeeper or the delegate;
             listeners receive the exception
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from gatekeeper.config import Settings, settings as default_settings
from gatekeeper.exceptions import HandlerContractError
from gatekeeper.http import (
    INTERNAL_SERVER_ERROR,
    ResponseSink,
    apply_security_headers,
    write_and_end,
)
from gatekeeper.middleware.registry import WILDCARD, MiddlewareRegistry
from gatekeeper.middleware.request_id import request_id_var
from gatekeeper.safety import Safety

logger = logging.getLogger(__name__)

EVENT_READY = "ready"
EVENT_ERROR = "error"
EVENTS = (EVENT_READY, EVENT_ERROR)

Listener = Callable[..., Any]


class Gatekeeper:
    """
    Admission front for a delegate application.

    Args:
        settings: Configuration; the module-level settings if omitted.
        safety:   Policy engine; built from `settings` if omitted.
        registry: Handler registry; a fresh one if omitted. Safety's
                  handlers are registered on the wildcard slot either way,
                  ahead of anything registered afterwards.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        safety: Optional[Safety] = None,
        registry: Optional[MiddlewareRegistry] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.safety = safety or Safety(self.settings)
        self.registry = registry or MiddlewareRegistry()
        self._listeners: Dict[str, List[Listener]] = {event: [] for event in EVENTS}
        self._wire()

    def _wire(self) -> None:
        if self.settings.admission_mode == "combined":
            self.registry.register(WILDCARD, self.safety.mw_admission())
        else:
            (
                self.registry
                .register(WILDCARD, self.safety.mw_method_policy())
                .register(WILDCARD, self.safety.mw_block_list())
                .register(WILDCARD, self.safety.mw_rate_limit())
            )

    def register(self, path: str, handler) -> "Gatekeeper":
        """Register an extra admission handler. Returns self for chaining."""
        self.registry.register(path, handler)
        return self

    # ── Events ────────────────────────────────────────────────────────────

    def add_listener(self, event: str, listener: Listener) -> "Gatekeeper":
        if event not in self._listeners:
            raise ValueError(f"Unknown event '{event}'. Must be one of: {EVENTS}")
        self._listeners[event].append(listener)
        return self

    def remove_listener(self, event: str, listener: Listener) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for '%s' event failed", event)

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def startup(self) -> None:
        self.safety.start()
        logger.info(
            "Gatekeeper ready (mode=%s, rate_limit=%d, blocklist=%s)",
            self.settings.admission_mode,
            self.safety.rate_limit,
            sorted(self.safety.url_blocklist),
        )
        self.emit(EVENT_READY)

    async def shutdown(self) -> None:
        await self.safety.cleanup()
        logger.info("Gatekeeper stopped")

    # ── Request path ──────────────────────────────────────────────────────

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """
        Admit or answer one request.

        Pipeline stops early → the handler's response goes out as is.
        Otherwise the delegate runs and its response gets security headers.
        Any failure → plain 500 and an "error" event.
        """
        path = request.url.path
        sink = ResponseSink()
        try:
            if not await self.registry.process(request, sink, path):
                if sink.response is None:
                    raise HandlerContractError(path)
                return sink.response

            response = await call_next(request)
            if self.settings.security_headers:
                apply_security_headers(response)
            return response
        except Exception as exc:
            logger.exception(
                "[%s] Request %s %s failed", request_id_var.get(""), request.method, path
            )
            self.emit(EVENT_ERROR, exc)
            return await write_and_end(ResponseSink(), 500, INTERNAL_SERVER_ERROR)

    def wrap(self, app: ASGIApp) -> ASGIApp:
        """Return `app` with this gatekeeper in front of it."""
        return BaseHTTPMiddleware(app, dispatch=self.dispatch)
