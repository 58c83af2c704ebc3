"""Request observers for the Echo Service.

An observer is invoked once per inbound request, HTTP or WebSocket,
before the request is dispatched. Observers run concurrently from many
connections and must be safe for that; the dispatcher does not
serialize calls.
"""

import threading
from collections import deque
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from starlette.requests import HTTPConnection

from echo_service.logging_config import get_logger


@runtime_checkable
class RequestObserver(Protocol):
    """Anything with an observe(request) method."""

    def observe(self, request: HTTPConnection) -> None: ...


RequestHook = RequestObserver | Callable[[HTTPConnection], None]


class NullObserver:
    """Observer that does nothing."""

    def observe(self, request: HTTPConnection) -> None:
        return None


class CallableObserver:
    """Adapts a plain function to the observer interface."""

    def __init__(self, func: Callable[[HTTPConnection], None]) -> None:
        self.func = func

    def observe(self, request: HTTPConnection) -> None:
        self.func(request)


class LoggingObserver:
    """Logs one request_received event per request."""

    def __init__(self, name: str = "echo_service.requests") -> None:
        self.logger = get_logger(name)

    def observe(self, request: HTTPConnection) -> None:
        client = request.client
        self.logger.info(
            "request_received",
            method=request.scope.get("method", "GET"),
            url=str(request.url),
            scheme=request.url.scheme,
            client=f"{client.host}:{client.port}" if client else None,
        )


class BufferingObserver:
    """Keeps the most recent requests in memory.

    Useful in tests that want to assert on what reached the server
    without decoding echo bodies.

    Attributes:
        maxlen: Maximum number of requests retained.
    """

    def __init__(self, maxlen: int = 1000) -> None:
        self.maxlen = maxlen
        self._requests: deque[HTTPConnection] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def observe(self, request: HTTPConnection) -> None:
        with self._lock:
            self._requests.append(request)

    @property
    def requests(self) -> list[HTTPConnection]:
        """Snapshot of observed requests, oldest first."""
        with self._lock:
            return list(self._requests)

    def clear(self) -> None:
        with self._lock:
            self._requests.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)


def as_observer(hook: RequestHook | None) -> RequestObserver:
    """Normalize a hook into a RequestObserver.

    Args:
        hook: An observer, a plain function, or None.

    Returns:
        An object with an observe method.

    Raises:
        TypeError: If the hook is neither an observer nor callable.
    """
    if hook is None:
        return NullObserver()
    if isinstance(hook, RequestObserver):
        return hook
    if callable(hook):
        return CallableObserver(hook)
    raise TypeError(f"Request hook must be callable or have an observe method, got {hook!r}")
