"""Echo Service for HTTP client testing.

A configurable HTTP and WebSocket echo server. Plain requests are
reflected back as a JSON description of what was received; callers can
shape the response with Expect-Status, Expect-Headers and
Expect-Chunked request headers. WebSocket connections echo every
message back unchanged.
"""

__version__ = "0.1.0"

__all__ = [
    "EchoBody",
    "EchoService",
    "create_app",
]


# Lazy imports to avoid pulling in the ASGI stack for body helpers
def __getattr__(name: str):
    """Lazy import of public API."""
    if name == "EchoService":
        from echo_service.server import EchoService

        return EchoService
    elif name == "create_app":
        from echo_service.server import create_app

        return create_app
    elif name == "EchoBody":
        from echo_service.models.body import EchoBody

        return EchoBody
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
