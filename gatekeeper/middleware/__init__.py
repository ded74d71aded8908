# Middleware package init
"""
Gatekeeper — Middleware Package
================================

What:  The admission pipeline and the ASGI middleware around it.

    registry.py    MiddlewareRegistry: path-scoped and wildcard ("*")
                   handlers, run in registration order with short-circuit.
    request_id.py  RequestIDMiddleware: X-Request-ID correlation for logs.

Execution order for one request:
    Request → [Request ID] → [Gatekeeper: wildcard handlers → path handlers] → Delegate

Any pipeline handler may answer the request itself (429/403/...) and stop
the chain; the delegate then never runs.
"""
