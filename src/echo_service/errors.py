"""Exception types for the Echo Service.

Every failure in the service is contained within a single connection.
These types let handlers tell recoverable directive errors apart from
errors that terminate the current request.
"""


class EchoServiceError(Exception):
    """Base class for all Echo Service errors."""


class DecodeError(EchoServiceError, ValueError):
    """Raised when a payload cannot be decoded into an EchoBody.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DirectiveError(EchoServiceError, ValueError):
    """Raised when a control directive header holds a malformed value.

    Attributes:
        header: Name of the offending request header.
        value: The raw header value as received.
        message: Human-readable error message.
    """

    def __init__(self, header: str, value: str, message: str) -> None:
        super().__init__(f"Error parsing {header}: {message}")
        self.header = header
        self.value = value
        self.message = message


class HandshakeError(EchoServiceError):
    """Raised when a WebSocket upgrade handshake cannot be completed."""


class ChunkedUnsupportedError(EchoServiceError):
    """Raised when the transport has no way to flush a chunked response."""

    def __init__(self, message: str = "Cannot send chunked response") -> None:
        super().__init__(message)
