"""Request handlers for the Echo Service.

- http: Plain HTTP echo with response control directives
- websocket: Upgrade handling and frame-for-frame echo loop
"""

__all__ = [
    "handle_http",
    "handle_websocket",
    "refuse_upgrade",
]


def __getattr__(name: str):
    """Lazy import of handlers."""
    if name == "handle_http":
        from echo_service.handlers.http import handle_http

        return handle_http
    elif name == "handle_websocket":
        from echo_service.handlers.websocket import handle_websocket

        return handle_websocket
    elif name == "refuse_upgrade":
        from echo_service.handlers.websocket import refuse_upgrade

        return refuse_upgrade
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
