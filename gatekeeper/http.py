"""
Gatekeeper — HTTP Helpers
==========================

What:  The request/response seams shared by Safety, the middleware
       registry and the Gatekeeper.

    client_identity()   Bucket key for rate/ban state
    ResponseSink        Where a middleware handler writes an early answer
    write_and_end()     Plain-text early response with exact headers
    apply_security_headers()  Hardening headers for delegated responses

Early-response contract:
    Status codes and bodies are observable behaviour and must not change:
        429  "Too many requests"
        403  "Access Denied"
        500  "Internal Server Error"
    Headers are exactly Content-Length (UTF-8 byte length of the body) and
    Content-Type: text/plain. No charset suffix, no details in the body.
"""

from typing import Dict, Optional

from starlette.requests import Request
from starlette.responses import Response

from gatekeeper.exceptions import ResponseAlreadyWrittenError

TOO_MANY_REQUESTS = "Too many requests"
ACCESS_DENIED = "Access Denied"
INTERNAL_SERVER_ERROR = "Internal Server Error"

FORWARDED_FOR_HEADER = "x-forwarded-for"
UNKNOWN_CLIENT = "unknown"

SECURITY_HEADERS: Dict[str, str] = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; base-uri 'none'; form-action 'self'; frame-ancestors 'none';"
    ),
    "Permissions-Policy": (
        "geolocation=(), midi=(), sync-xhr=(), microphone=(), camera=(), "
        "magnetometer=(), gyroscope=(), fullscreen=(self), payment=()"
    ),
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Content-Language": "en-US",
}


def client_identity(request: Request) -> str:
    """
    Derive the opaque client key for a request.

    The forwarded-for header wins when present and non-empty, taken verbatim
    (no splitting, no canonicalisation). Otherwise the transport peer host.
    """
    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded:
        return forwarded
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


class ResponseSink:
    """
    Collects at most one early response for a request.

    Handlers write through write_and_end(); the Gatekeeper sends whatever
    ended up here when the pipeline stops early.
    """

    def __init__(self) -> None:
        self.response: Optional[Response] = None

    @property
    def ended(self) -> bool:
        return self.response is not None

    def end(self, response: Response) -> Response:
        if self.response is not None:
            raise ResponseAlreadyWrittenError(response.status_code)
        self.response = response
        return response


async def write_and_end(sink: ResponseSink, status_code: int, message: str) -> Response:
    """Write a plain-text response to the sink and return it."""
    body = message.encode("utf-8")
    response = Response(
        content=body,
        status_code=status_code,
        headers={
            "Content-Length": str(len(body)),
            "Content-Type": "text/plain",
        },
    )
    return sink.end(response)


def apply_security_headers(response: Response) -> Response:
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response
