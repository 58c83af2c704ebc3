"""ASGI dispatcher and app factory for the Echo Service.

Provides the EchoService dispatcher and the Starlette app factory.
"""

import logging
from enum import Enum

from starlette.applications import Starlette
from starlette.requests import HTTPConnection, Request
from starlette.routing import Route, WebSocketRoute
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocket

from echo_service.config import EchoConfig, get_config
from echo_service.handlers.http import handle_http
from echo_service.handlers.websocket import handle_websocket, is_upgrade_request, refuse_upgrade
from echo_service.observer import LoggingObserver, RequestHook, as_observer

logger = logging.getLogger(__name__)


class RequestKind(Enum):
    """How an inbound connection is handled."""

    PLAIN = "plain"
    WEBSOCKET_UPGRADE = "websocket_upgrade"


def classify(connection: HTTPConnection) -> RequestKind:
    """Classify a connection as a plain request or a WebSocket upgrade.

    A websocket scope has already been upgraded by the ASGI server and
    always qualifies.
    """
    if connection.scope["type"] == "websocket":
        return RequestKind.WEBSOCKET_UPGRADE
    if is_upgrade_request(connection.headers):
        return RequestKind.WEBSOCKET_UPGRADE
    return RequestKind.PLAIN


class EchoService:
    """Echo Service ASGI dispatcher.

    Single entry point for every inbound connection. Calls the request
    hook, then routes to the WebSocket or HTTP echo handler.

    Attributes:
        request_logger: Observer invoked once per request before dispatch.
    """

    def __init__(self, request_logger: RequestHook | None = None) -> None:
        """Initialize the dispatcher.

        Args:
            request_logger: Optional observer or function called with each
                incoming request.
        """
        self.request_logger = as_observer(request_logger)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Dispatch one ASGI connection to the WebSocket or HTTP echo handler."""
        if scope["type"] not in ("http", "websocket"):
            raise ValueError(f"Unsupported ASGI scope type: {scope['type']}")

        connection: HTTPConnection
        if scope["type"] == "websocket":
            connection = WebSocket(scope, receive, send)
        else:
            connection = Request(scope, receive, send)

        self.request_logger.observe(connection)

        if classify(connection) is RequestKind.WEBSOCKET_UPGRADE:
            if isinstance(connection, WebSocket):
                await handle_websocket(connection)
                return
            response = refuse_upgrade(connection)
        else:
            response = await handle_http(connection)
        await response(scope, receive, send)


def create_app(
    config: EchoConfig | None = None,
    request_logger: RequestHook | None = None,
) -> Starlette:
    """Create an ASGI application for the Echo Service.

    This is the main entry point for running the service with an ASGI
    server like uvicorn. Every path and method reaches the dispatcher.

    Args:
        config: Optional configuration. If not provided, uses global config.
        request_logger: Optional request hook. When omitted and
            config.log_requests is set, requests are logged.

    Returns:
        A Starlette application.

    Example:
        ```python
        import uvicorn
        from echo_service.server import create_app

        app = create_app()
        uvicorn.run(app, host="0.0.0.0", port=8080)
        ```
    """
    config = config or get_config()
    if request_logger is None and config.log_requests:
        request_logger = LoggingObserver()

    service = EchoService(request_logger)

    app = Starlette(
        routes=[
            Route("/{path:path}", service),
            WebSocketRoute("/{path:path}", service),
        ]
    )
    app.state.service = service

    logger.debug(f"Echo app created (log_requests={config.log_requests})")
    return app
