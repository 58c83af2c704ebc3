"""Response control protocol for the Echo Service.

Callers shape the echo response through three optional request headers:

- Expect-Headers: JSON object of headers to add to the response
- Expect-Status: status code to respond with (204 sends no body)
- Expect-Chunked: any non-empty value streams the body as a flushed chunk

Directives are applied in that order. Malformed values are logged and
ignored; they never fail the request.
"""

import logging
import re
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass

from pydantic import TypeAdapter, ValidationError
from starlette.datastructures import MutableHeaders
from starlette.responses import Response, StreamingResponse

from echo_service.errors import ChunkedUnsupportedError, DirectiveError
from echo_service.models.body import EchoBody, encode

logger = logging.getLogger(__name__)

HEADER_EXPECT_STATUS = "Expect-Status"
HEADER_EXPECT_HEADERS = "Expect-Headers"
HEADER_EXPECT_CHUNKED = "Expect-Chunked"

JSON_CONTENT_TYPE = "application/json"

_header_map = TypeAdapter(dict[str, str])
_status_pattern = re.compile(r"[+-]?[0-9]+")
_token_pattern = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

# Final statuses that must not carry a message body
NO_BODY_STATUSES = frozenset({304})


def parse_expect_headers(value: str) -> dict[str, str]:
    """Parse an Expect-Headers value.

    Args:
        value: Raw header value, a JSON object of string pairs.

    Returns:
        Mapping of response header names to values.

    Raises:
        DirectiveError: If the value is not a JSON object of strings.
    """
    try:
        return _header_map.validate_json(value)
    except ValidationError as e:
        raise DirectiveError(HEADER_EXPECT_HEADERS, value, str(e)) from e


def parse_expect_status(value: str) -> int:
    """Parse an Expect-Status value.

    Args:
        value: Raw header value, a decimal integer.

    Returns:
        The requested status code.

    Raises:
        DirectiveError: If the value is not an integer in 200..999. Informational
            codes are interim responses and cannot end an exchange.
    """
    if not _status_pattern.fullmatch(value):
        raise DirectiveError(HEADER_EXPECT_STATUS, value, f"invalid syntax {value!r}")
    status = int(value)
    if not 200 <= status <= 999:
        raise DirectiveError(HEADER_EXPECT_STATUS, value, f"invalid status code {status}")
    return status


def is_valid_header(name: str, value: str) -> bool:
    """Check that a header pair can be written on the wire."""
    if not _token_pattern.fullmatch(name):
        return False
    if any(c in value for c in "\r\n\0"):
        return False
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        return False
    return True


@dataclass(frozen=True)
class ControlDirectives:
    """Parsed response control directives for one request.

    Attributes:
        headers: Headers to inject, or None if not requested.
        status: Status code override, or None for the default 200.
        chunked: Whether the body should be streamed and flushed.
    """

    headers: dict[str, str] | None = None
    status: int | None = None
    chunked: bool = False

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "ControlDirectives":
        """Read directives from request headers, ignoring malformed ones."""
        expected_headers = None
        expected_status = None

        raw_headers = headers.get(HEADER_EXPECT_HEADERS, "")
        if raw_headers:
            try:
                expected_headers = parse_expect_headers(raw_headers)
            except DirectiveError as e:
                logger.warning(str(e))

        raw_status = headers.get(HEADER_EXPECT_STATUS, "")
        if raw_status:
            try:
                expected_status = parse_expect_status(raw_status)
            except DirectiveError as e:
                logger.warning(str(e))

        return cls(
            headers=expected_headers,
            status=expected_status,
            chunked=bool(headers.get(HEADER_EXPECT_CHUNKED, "")),
        )


async def _single_chunk(content: bytes) -> AsyncIterator[bytes]:
    yield content


def shape_response(
    body: EchoBody,
    directives: ControlDirectives,
    supports_flush: bool = True,
) -> Response:
    """Build the echo response under the given directives.

    Order matters: injected headers are applied first, then the status.
    A 204 status returns immediately without a body, even when chunked
    delivery was requested. A 304 status is sent without a body too.

    Args:
        body: The echo body to send.
        directives: Parsed control directives.
        supports_flush: Whether the transport can flush a chunked body.

    Returns:
        The response to send.

    Raises:
        ChunkedUnsupportedError: If chunked delivery was requested but the
            transport cannot flush.
    """
    response_headers = MutableHeaders()
    response_headers["Content-Type"] = JSON_CONTENT_TYPE

    if directives.headers is not None:
        for name, value in directives.headers.items():
            if not is_valid_header(name, value):
                logger.warning(f"Skipping invalid header in {HEADER_EXPECT_HEADERS}: {name!r}")
                continue
            response_headers[name] = value

    status_code = 200
    if directives.status is not None:
        status_code = directives.status
        if status_code == 204:
            return Response(status_code=204, headers=response_headers)
        if status_code in NO_BODY_STATUSES:
            return Response(status_code=status_code, headers=response_headers)

    content = encode(body)
    if directives.chunked:
        if not supports_flush:
            raise ChunkedUnsupportedError()
        return StreamingResponse(
            _single_chunk(content),
            status_code=status_code,
            headers=response_headers,
        )
    return Response(content, status_code=status_code, headers=response_headers)
