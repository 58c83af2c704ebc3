"""Pydantic models for the Echo Service.

- body: The echoed request body and its encode/decode helpers
"""

__all__ = [
    "EchoBody",
    "encode",
    "decode",
    "decode_and_close",
    "adecode_and_close",
]


def __getattr__(name: str):
    """Lazy import of models."""
    if name in __all__:
        from echo_service.models import body

        return getattr(body, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
