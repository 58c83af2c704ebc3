"""Environment-based configuration for the Echo Service.

All configuration is loaded from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class EchoConfig:
    """Configuration for the Echo Service.

    Loaded from environment variables with defaults suitable for local testing.
    """

    # Server settings
    host: str = field(default_factory=lambda: os.getenv("ECHO_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("ECHO_PORT", "8080")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "text"))

    # Install the built-in request logger when no hook is given
    log_requests: bool = field(default_factory=lambda: _env_flag("ECHO_LOG_REQUESTS"))

    # Largest WebSocket message the server accepts, enforced by uvicorn
    ws_max_size: int = field(
        default_factory=lambda: int(os.getenv("WS_MAX_SIZE", str(16 * 1024 * 1024)))
    )  # 16MB default

    @classmethod
    def from_env(cls) -> "EchoConfig":
        """Create configuration from environment variables."""
        return cls()


# Global singleton configuration
_config: EchoConfig | None = None


def get_config() -> EchoConfig:
    """Get the global configuration instance.

    Returns:
        The global EchoConfig instance.
    """
    global _config
    if _config is None:
        _config = EchoConfig.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None


def set_config(config: EchoConfig) -> None:
    """Set the global configuration (for testing).

    Args:
        config: The configuration to use.
    """
    global _config
    _config = config
