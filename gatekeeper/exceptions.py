"""
Gatekeeper — Custom Exception Hierarchy
========================================

What:  Application-specific exceptions raised by the gatekeeper's own code.
How:   Each exception carries a message and an optional context dict. The
       message is safe to log; neither is ever written into a response body.

Exception Hierarchy:
    GatekeeperError (base)
    ├── ConfigurationError           → startup fails (malformed settings)
    ├── RegistrationError            → bad middleware registration
    ├── HandlerContractError         → 500 (handler stopped chain, wrote nothing)
    └── ResponseAlreadyWrittenError  → 500 (second early response on one sink)

Policy denials (rate limit, blocklist, banned client) are NOT exceptions.
They are expected outcomes, logged by the access log and answered with
429/403 early responses.
"""

from typing import Any, Dict, Optional


class GatekeeperError(Exception):
    """
    Base exception for all gatekeeper errors.

    Attributes:
        message:  Human-readable description (logged, never sent to clients)
        context:  Additional debug info for the logs
    """

    def __init__(
        self,
        message: str = "An unexpected gatekeeper error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(GatekeeperError):
    """
    Raised when environment configuration cannot be loaded.

    When:  A value is present but malformed (e.g. RATE_LIMIT=ten).
           Absent values never raise; they fall back to defaults.
    """

    def __init__(
        self,
        message: str = "Configuration validation failed",
        errors: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if errors:
            ctx["errors"] = errors
        super().__init__(message=message, context=ctx)
        self.errors = errors or []


class RegistrationError(GatekeeperError):
    """Raised when a middleware handler is registered with an invalid path or handler."""

    def __init__(
        self,
        message: str = "Invalid middleware registration",
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if path is not None:
            ctx["path"] = path
        super().__init__(message=message, context=ctx)
        self.path = path


class HandlerContractError(GatekeeperError):
    """
    Raised when a middleware handler stops the chain without writing a response.

    A truthy return means "I answered this request". Without an early
    response on the sink the connection would be left hanging, so the
    gatekeeper converts this into a 500.
    """

    def __init__(
        self,
        path: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["path"] = path
        super().__init__(
            message=f"Middleware for '{path}' terminated the chain without writing a response",
            context=ctx,
        )


class ResponseAlreadyWrittenError(GatekeeperError):
    """Raised when a second early response is written to the same sink."""

    def __init__(
        self,
        status_code: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["status_code"] = status_code
        super().__init__(
            message=f"Response already written; refusing to write status {status_code}",
            context=ctx,
        )
        self.status_code = status_code
