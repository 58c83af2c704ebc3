"""Entrypoint for running the Echo Service standalone.

Usage:
    python -m echo_service
    python -m echo_service --port 8080
    python -m echo_service --host 127.0.0.1 --port 8080 --log-requests
"""

import argparse
import logging
import sys

from echo_service.config import EchoConfig, get_config
from echo_service.logging_config import LOG_FORMATS, setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments, defaulting to the environment."""
    config = get_config()
    parser = argparse.ArgumentParser(
        description="Echo Service - HTTP and WebSocket echo server for client testing"
    )
    parser.add_argument(
        "--host",
        default=config.host,
        help=f"Host to bind to (default: {config.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config.port,
        help=f"Port to listen on (default: {config.port})",
    )
    parser.add_argument(
        "--log-level",
        default=config.log_level.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {config.log_level.upper()})",
    )
    parser.add_argument(
        "--log-format",
        default=config.log_format,
        choices=LOG_FORMATS,
        help=f"Log output format (default: {config.log_format})",
    )
    parser.add_argument(
        "--log-requests",
        action="store_true",
        default=config.log_requests,
        help="Log every incoming request",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> EchoConfig:
    """Build the effective configuration from parsed arguments."""
    return EchoConfig(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        log_format=args.log_format,
        log_requests=args.log_requests,
        ws_max_size=get_config().ws_max_size,
    )


def main(argv: list[str] | None = None) -> None:
    """Main entrypoint for the echo service."""
    args = parse_args(argv)
    config = config_from_args(args)
    setup_logging(config.log_level, config.log_format)

    logger = logging.getLogger(__name__)
    logger.info(f"Starting Echo Service on {config.host}:{config.port}")

    try:
        import uvicorn

        from echo_service.server import create_app

        app = create_app(config)

        uvicorn.run(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
            log_config=None,  # Keep our logging setup
            ws_max_size=config.ws_max_size,
        )
    except ImportError as e:
        logger.error(f"Missing dependency: {e}")
        logger.error("Install with: pip install echo-service")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
