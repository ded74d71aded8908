"""
Gatekeeper — Package Initializer
=================================

What: A request gatekeeper for ASGI applications. Each inbound request is
      checked (method policy, URL blocklist, bans, rate limit) before it may
      reach the application behind it.

Architecture Note:

    ┌─────────────────────────────────────┐
    │   main.py (app factory, lifespan)   │  ← FastAPI shell, /health, logging
    ├─────────────────────────────────────┤
    │   gatekeeper.py (composition root)  │  ← dispatch, events, wrap()
    ├─────────────────────────────────────┤
    │   middleware/registry.py            │  ← ordered handlers, short-circuit
    ├─────────────────────────────────────┤
    │   safety/ (policy engine)           │  ← blocklist, rate limit, bans, sweep
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
