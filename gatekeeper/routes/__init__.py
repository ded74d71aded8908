# Routes package init
"""
Gatekeeper — Routes Package
============================

Route Inventory:
    - health.py:  GET /health   (gatekeeper status)

Application routes are not defined here: the delegate passed to
create_app() is mounted at "/" and serves everything else.
"""
