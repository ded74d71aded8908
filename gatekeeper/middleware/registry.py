"""
Gatekeeper — Middleware Registry
=================================

What:  Ordered, path-scoped admission handlers plus a wildcard set that
       applies to every path.
How:   register() appends; process() runs wildcard handlers, then the
       handlers for the exact request path, each in registration order.

Handler contract:
    async def handler(request, sink) -> Optional[truthy]

    Return None (or anything falsy) to continue. Return something truthy,
    normally the Response written with write_and_end(sink, ...), to stop the
    chain: no later handler runs, wildcard or path-specific. Plain
    (non-async) callables are accepted too.

Errors raised by a handler are not caught here. The Gatekeeper decides
what a failure means for the request.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from starlette.requests import Request

from gatekeeper.exceptions import RegistrationError
from gatekeeper.http import ResponseSink

logger = logging.getLogger(__name__)

WILDCARD = "*"

Handler = Callable[[Request, ResponseSink], Union[Awaitable[Optional[Any]], Optional[Any]]]


class MiddlewareRegistry:
    """Registry of admission handlers keyed by exact request path."""

    def __init__(self) -> None:
        self._wildcard: List[Handler] = []
        self._by_path: Dict[str, List[Handler]] = {}

    def register(self, path: str, handler: Handler) -> "MiddlewareRegistry":
        """
        Register `handler` for `path` ("*" for every path). Returns self for chaining.

        Raises:
            RegistrationError: empty path or non-callable handler.
        """
        if not isinstance(path, str) or not path:
            raise RegistrationError("Middleware path must be a non-empty string", path=path)
        if not callable(handler):
            raise RegistrationError(
                f"Middleware for '{path}' must be callable, got {type(handler).__name__}",
                path=path,
            )

        if path == WILDCARD:
            self._wildcard.append(handler)
        else:
            self._by_path.setdefault(path, []).append(handler)

        logger.debug(
            "Registered middleware %s for %s",
            getattr(handler, "__name__", repr(handler)),
            path,
        )
        return self

    def handlers_for(self, path: str) -> List[Handler]:
        """Handlers that process() would run for `path`, in order."""
        return self._wildcard + self._by_path.get(path, [])

    async def process(self, request: Request, sink: ResponseSink, path: str) -> bool:
        """
        Run the handlers for `path`.

        Returns:
            True if every handler ran without stopping the chain,
            False as soon as one of them did.
        """
        for handler in self.handlers_for(path):
            result = handler(request, sink)
            if inspect.isawaitable(result):
                result = await result
            if result:
                return False
        return True

    def __len__(self) -> int:
        return len(self._wildcard) + sum(len(h) for h in self._by_path.values())
