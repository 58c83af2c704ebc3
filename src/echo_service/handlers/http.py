"""Plain HTTP echo handler.

Builds the echo body for an ordinary request and shapes the response
according to the caller's control directives.
"""

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import Scope

from echo_service.control import ControlDirectives, shape_response
from echo_service.errors import ChunkedUnsupportedError
from echo_service.models.body import EchoBody


def canonical_header_key(name: str) -> str:
    """Return the canonical MIME form of a header name.

    ASGI servers lower-case header names; "x-request-id" becomes
    "X-Request-Id".
    """
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def request_target(scope: Scope) -> str:
    """Return the request target (path and query) as sent by the client."""
    raw_path = scope.get("raw_path")
    if raw_path:
        # Some servers include the query string in raw_path
        target = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        target = scope.get("root_path", "") + scope["path"]
    query_string = scope.get("query_string", b"")
    if query_string:
        target = f"{target}?{query_string.decode('latin-1')}"
    return target


def serialize_request(scope: Scope, body: bytes) -> str:
    """Serialize a request back to its HTTP/1.x wire form.

    Headers are written in the order the server received them.
    """
    http_version = scope.get("http_version", "1.1")
    lines = [f"{scope['method']} {request_target(scope)} HTTP/{http_version}"]
    for name, value in scope.get("headers", []):
        lines.append(f"{canonical_header_key(name.decode('latin-1'))}: {value.decode('latin-1')}")
    head = "\r\n".join(lines) + "\r\n\r\n"
    return head + body.decode("utf-8", errors="replace")


def transport_supports_flush(scope: Scope) -> bool:
    """Check whether the connection can carry a flushed streamed body.

    Every ASGI http connection can: each body message with more_body set
    is written out as it is sent. HTTP/1.0 peers get a close-delimited
    body instead of chunked transfer coding.
    """
    return scope["type"] == "http"


async def build_echo_body(request: Request) -> EchoBody:
    """Construct the echo body for a request, reading its body."""
    raw_body = await request.body()
    return EchoBody(
        method=request.method,
        path=request.scope["path"],
        url=request_target(request.scope),
        host=request.headers.get("host", ""),
        request=serialize_request(request.scope, raw_body),
    )


async def handle_http(request: Request) -> Response:
    """Echo a plain HTTP request.

    Args:
        request: The incoming request.

    Returns:
        The JSON echo response, shaped by any control directives.
    """
    body = await build_echo_body(request)
    directives = ControlDirectives.from_headers(request.headers)
    try:
        return shape_response(
            body,
            directives,
            supports_flush=transport_supports_flush(request.scope),
        )
    except ChunkedUnsupportedError as e:
        return PlainTextResponse(str(e), status_code=500)
