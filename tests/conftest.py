"""Shared test fixtures for Echo Service tests.

Provides a configured app, a Starlette test client, and helpers for
driving the ASGI dispatcher directly with hand-built scopes.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from starlette.testclient import TestClient

from echo_service.config import EchoConfig, reset_config, set_config
from echo_service.server import create_app

# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_config_fixture():
    """Reset config before and after each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def test_config() -> EchoConfig:
    """Create test configuration."""
    config = EchoConfig(
        host="127.0.0.1",
        port=0,
        log_level="DEBUG",
        log_format="text",
        log_requests=False,
    )
    set_config(config)
    return config


# =============================================================================
# App Fixtures
# =============================================================================


@pytest.fixture
def app(test_config):
    """Echo app with no request hook."""
    return create_app(test_config)


@pytest.fixture
def client(app):
    """Starlette test client for the echo app."""
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Raw ASGI Helpers
# =============================================================================


@pytest.fixture
def make_scope() -> Callable[..., dict[str, Any]]:
    """Factory for HTTP scopes the test client cannot produce."""

    def _make_scope(
        method: str = "GET",
        path: str = "/",
        query_string: bytes = b"",
        headers: list[tuple[bytes, bytes]] | None = None,
        http_version: str = "1.1",
    ) -> dict[str, Any]:
        return {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": http_version,
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "query_string": query_string,
            "root_path": "",
            "headers": headers if headers is not None else [(b"host", b"echo.test")],
            "client": ("127.0.0.1", 50000),
            "server": ("127.0.0.1", 8080),
        }

    return _make_scope


@pytest.fixture
def asgi_call() -> Callable[..., Awaitable[dict[str, Any]]]:
    """Run an ASGI app against a scope and collect the response."""

    async def _asgi_call(asgi_app, scope: dict[str, Any], body: bytes = b"") -> dict[str, Any]:
        inbound = [{"type": "http.request", "body": body, "more_body": False}]
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            if inbound:
                return inbound.pop(0)
            # No disconnect until the response is complete
            await asyncio.Event().wait()
            return {"type": "http.disconnect"}

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await asgi_app(scope, receive, send)

        start = next(m for m in sent if m["type"] == "http.response.start")
        return {
            "status": start["status"],
            "headers": {k.decode().lower(): v.decode() for k, v in start["headers"]},
            "body": b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body"),
        }

    return _asgi_call


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as an integration test",
    )
