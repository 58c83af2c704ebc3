"""Pydantic model for the echoed request body.

The echo body is the JSON document returned for every plain HTTP
request. Test suites decode it to assert exactly what their HTTP
client put on the wire.
"""

from contextlib import aclosing, closing
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from echo_service.errors import DecodeError


class EchoBody(BaseModel):
    """Echoed representation of one HTTP request.

    Field names are part of the wire format and must not change.
    """

    model_config = ConfigDict(frozen=True)

    method: str = Field(default="", description="HTTP verb of the request")
    path: str = Field(default="", description="Percent-decoded URL path")
    url: str = Field(default="", description="Request target including query")
    host: str = Field(default="", description="Host header / authority")
    request: str = Field(
        default="",
        description="Request line, headers and body as received",
    )

    @field_validator("method", "path", "url", "host", "request", mode="before")
    @classmethod
    def _null_to_zero(cls, value: Any) -> Any:
        # JSON null decodes to the zero value, like a missing field
        return "" if value is None else value


class ReadableStream(Protocol):
    def read(self) -> bytes: ...

    def close(self) -> None: ...


class AsyncReadableStream(Protocol):
    async def aread(self) -> bytes: ...

    async def aclose(self) -> None: ...


def encode(body: EchoBody) -> bytes:
    """Serialize an echo body to newline-terminated compact JSON.

    Args:
        body: The echo body to serialize.

    Returns:
        UTF-8 encoded JSON followed by a single newline.
    """
    return body.model_dump_json().encode("utf-8") + b"\n"


def decode(data: bytes | str) -> EchoBody:
    """Deserialize an echo body.

    Missing fields take their zero value and unknown fields are ignored.

    Args:
        data: JSON payload.

    Returns:
        The decoded EchoBody.

    Raises:
        DecodeError: If the payload is not a JSON object of the expected shape.
    """
    try:
        return EchoBody.model_validate_json(data)
    except ValidationError as e:
        raise DecodeError(f"Invalid echo body: {e}") from e


def decode_and_close(stream: ReadableStream) -> EchoBody:
    """Decode an echo body from a stream, closing the stream afterwards.

    The stream is closed whether or not decoding succeeds.
    """
    with closing(stream):
        return decode(stream.read())


async def adecode_and_close(stream: AsyncReadableStream) -> EchoBody:
    """Async variant of decode_and_close for streams such as httpx responses."""
    async with aclosing(stream):
        return decode(await stream.aread())
