"""
Gatekeeper — Test Configuration (conftest.py)
==============================================

What:  Shared pytest fixtures for the whole suite.

Fixtures:
    clock           FakeClock the tests advance by hand (ms)
    make_settings   Settings factory with test-friendly overrides
    safety          Safety on the fake clock (sweep task NOT started)
    make_request    Builds a Starlette Request from a bare ASGI scope
    gatekeeper      Gatekeeper around `safety`
    app / client    FastAPI app with a small delegate + httpx AsyncClient
    make_app        App factory taking settings overrides

Note: httpx's ASGITransport does not run the lifespan, so HTTP tests never
start the background sweep. Tests that need it call startup() themselves.
"""

import os

# Settings are read at import time; pin them before importing the package.
os.environ["RATE_LIMIT"] = "10"
os.environ["INACTIVITY_LENGTH"] = "10000"
os.environ["BAN_LENGTH"] = "300000"
os.environ["SWEEP_INTERVAL"] = "60000"
os.environ["URL_BLOCKLIST"] = "/admin"
os.environ["DENIED_METHODS"] = "POST"
os.environ["ALLOWLIST"] = ""
os.environ["ADMISSION_MODE"] = "middleware"
os.environ["DEBUG"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route, Router

from gatekeeper.config import load_settings
from gatekeeper.gatekeeper import Gatekeeper
from gatekeeper.main import create_app
from gatekeeper.safety import Safety


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


async def _echo(request):
    return PlainTextResponse(f"hello {request.url.path}")


async def _boom(request):
    raise RuntimeError("delegate exploded")


def build_delegate() -> Router:
    """Stand-in for the downstream application."""
    return Router(
        routes=[
            Route("/", _echo),
            Route("/x", _echo),
            Route("/y", _echo),
            Route("/admin", _echo),
            Route("/submit", _echo, methods=["GET", "POST"]),
            Route("/boom", _boom),
        ]
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_settings():
    """
    Usage:
        settings = make_settings(rate_limit=3, tracker_cap=5)
    """

    def _make(**overrides):
        values = {
            "rate_limit": 10,
            "inactivity_length": 10_000,
            "ban_length": 300_000,
            "sweep_interval": 60_000,
            "url_blocklist": "/admin",
            "denied_methods": "POST",
            "allowlist": "",
            "admission_mode": "middleware",
            "debug": False,
        }
        values.update(overrides)
        return load_settings(**values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def safety(settings, clock):
    return Safety(settings, clock=clock)


@pytest.fixture
def make_request():
    """Build a Request without a server: make_request("/x", client="1.2.3.4")."""

    def _make(path="/x", method="GET", client="10.0.0.1", headers=None):
        raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ]
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": raw_headers,
            "client": (client, 50000) if client else None,
            "server": ("testserver", 80),
        }
        return Request(scope)

    return _make


@pytest.fixture
def gatekeeper(settings, safety):
    return Gatekeeper(settings, safety=safety)


@pytest.fixture
def app(settings, gatekeeper):
    return create_app(delegate=build_delegate(), settings=settings, gatekeeper=gatekeeper)


@pytest.fixture
def delegate():
    return build_delegate()


@pytest.fixture
def make_app(make_settings, clock):
    """
    App factory for tests that need non-default settings.

    Usage:
        app = make_app(admission_mode="combined")
        gate = app.state.gatekeeper
    """

    def _make(**overrides):
        cfg = make_settings(**overrides)
        gate = Gatekeeper(cfg, safety=Safety(cfg, clock=clock))
        return create_app(delegate=build_delegate(), settings=cfg, gatekeeper=gate)

    return _make


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX AsyncClient talking straight to the ASGI app.

    Usage:
        response = await client.get("/x", headers={"X-Forwarded-For": "1.2.3.4"})
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
