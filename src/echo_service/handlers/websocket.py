"""WebSocket echo handler.

Every message received on an upgraded connection is sent straight back
with the same type and payload. The loop ends on the first read or
write error; the connection is then released and the error logged.
"""

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from echo_service.errors import HandshakeError

logger = logging.getLogger(__name__)

WEBSOCKET_VERSION = "13"


def is_upgrade_request(headers: Mapping[str, str]) -> bool:
    """Check whether request headers ask for a WebSocket upgrade.

    This is a qualification check only; see validate_handshake for the
    full handshake requirements.
    """
    return headers.get("connection", "") == "Upgrade" and "websocket" in headers.get(
        "upgrade", ""
    )


def _has_token(headers: Headers, name: str, token: str) -> bool:
    for value in headers.getlist(name):
        if token in (part.strip().lower() for part in value.split(",")):
            return True
    return False


def validate_handshake(method: str, headers: Headers) -> None:
    """Validate the client side of a WebSocket opening handshake.

    Args:
        method: HTTP method of the upgrade request.
        headers: Request headers.

    Raises:
        HandshakeError: If the request is not a valid handshake.
    """
    if not _has_token(headers, "connection", "upgrade"):
        raise HandshakeError(
            "websocket: the client is not using the websocket protocol: "
            "'upgrade' token not found in 'Connection' header"
        )
    if not _has_token(headers, "upgrade", "websocket"):
        raise HandshakeError(
            "websocket: the client is not using the websocket protocol: "
            "'websocket' token not found in 'Upgrade' header"
        )
    if method != "GET":
        raise HandshakeError(
            "websocket: the client is not using the websocket protocol: "
            "request method is not GET"
        )
    if not _has_token(headers, "sec-websocket-version", WEBSOCKET_VERSION):
        raise HandshakeError(
            "websocket: unsupported version: 13 not found in 'Sec-Websocket-Version' header"
        )
    if not headers.get("sec-websocket-key", "").strip():
        raise HandshakeError(
            "websocket: not a websocket handshake: "
            "'Sec-WebSocket-Key' header is missing or blank"
        )


def refuse_upgrade(request: Request) -> Response:
    """Respond to an upgrade request the server did not hand over.

    The handshake cannot complete over a plain HTTP exchange, so the
    response is always a 500 describing why.
    """
    try:
        validate_handshake(request.method, request.headers)
    except HandshakeError as e:
        reason = str(e)
    else:
        reason = "websocket: connection cannot be upgraded by this server"
    logger.warning(f"Upgrade failed for {request.url.path}: {reason}")
    return PlainTextResponse(reason, status_code=500)


@asynccontextmanager
async def upgraded(websocket: WebSocket) -> AsyncIterator[WebSocket]:
    """Accept a WebSocket and guarantee it is released afterwards."""
    try:
        await websocket.accept()
    except RuntimeError as e:
        raise HandshakeError(f"websocket: upgrade failed: {e}") from e
    try:
        yield websocket
    finally:
        if (
            websocket.application_state == WebSocketState.CONNECTED
            and websocket.client_state == WebSocketState.CONNECTED
        ):
            try:
                await websocket.close()
            except (OSError, RuntimeError) as e:
                logger.debug(f"Close after socket error failed: {e}")


async def echo_messages(websocket: WebSocket) -> None:
    """Echo messages until the connection fails.

    Raises:
        WebSocketDisconnect: When the peer closes or the transport drops.
    """
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

        text = message.get("text")
        if text is not None:
            await websocket.send_text(text)
        else:
            await websocket.send_bytes(message.get("bytes") or b"")


async def handle_websocket(websocket: WebSocket) -> None:
    """Upgrade the connection and run the echo loop until it fails.

    Errors are logged and never propagated past this connection.
    """
    logger.debug(f"WebSocket upgrade: {websocket.url.path}")
    try:
        async with upgraded(websocket):
            await echo_messages(websocket)
    except HandshakeError as e:
        logger.warning(str(e))
    except WebSocketDisconnect as e:
        logger.info(f"Socket error: connection closed (code={e.code})")
    except (OSError, RuntimeError) as e:
        logger.warning(f"Socket error: {e}")
