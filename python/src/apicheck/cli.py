"""CLI entry point for the apicheck API server."""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from apicheck.config import ApiCheckConfig, apply_env_overrides, load_config, load_env_file
from apicheck.errors import StartupError
from apicheck.logging_config import configure_logging
from apicheck.openapi.consistency import check_app_against_document
from apicheck.openapi.loader import load_openapi_document
from apicheck.server import create_app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="apicheck",
        description="apicheck - HTTP API skeleton with OpenAPI contract checks",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Env file loaded before startup; it must exist (default: .env)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address to bind to (overrides config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=int,
        default=None,
        help="Graceful shutdown timeout in seconds (default: 5)",
    )
    parser.add_argument(
        "--variant",
        type=str,
        default=None,
        choices=["records", "errors"],
        help="Which endpoints to expose (default: records)",
    )
    parser.add_argument(
        "--strict-routes",
        action="store_true",
        default=False,
        help="Refuse to start if the routes disagree with the OpenAPI document",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ApiCheckConfig:
    """Load env file and config, then apply environment and CLI overrides.

    Raises:
        StartupError: If the env file is missing or the config is invalid.
        FileNotFoundError: If an explicit config file does not exist.
    """
    load_env_file(args.env_file)

    config = load_config(args.config) if args.config is not None else ApiCheckConfig()
    config = apply_env_overrides(config)

    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.log_level is not None:
        config.server.log_level = args.log_level
    if args.log_format is not None:
        config.server.log_format = args.log_format
    if args.shutdown_timeout is not None:
        config.server.shutdown_timeout = args.shutdown_timeout
    if args.variant is not None:
        config.server.variant = args.variant
    return config


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the apicheck server.

    Loads the env file and configuration, then serves the app with uvicorn.
    SIGINT/SIGTERM trigger uvicorn's graceful shutdown: in-flight requests
    get ``server.shutdown_timeout`` seconds before the process exits.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Basic stderr logger until the configured one is installed
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    logger = logging.getLogger("apicheck")

    try:
        config = build_config(args)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except StartupError as exc:
        logger.error("%s", exc)
        sys.exit(exc.exit_code)

    configure_logging(
        level=config.server.log_level,
        fmt=config.server.log_format,
    )

    app = create_app(config)

    if args.strict_routes:
        try:
            document = load_openapi_document(config.openapi.resolved_path(config.server.variant))
        except StartupError as exc:
            logger.error("%s", exc)
            sys.exit(exc.exit_code)
        report = check_app_against_document(app, document)
        if not report.ok:
            logger.error("Route discrepancies found:\n%s", report.format())
            sys.exit(1)

    logger.info(
        "Starting apicheck on %s:%d (variant=%s)",
        config.server.host,
        config.server.port,
        config.server.variant,
    )

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        timeout_graceful_shutdown=config.server.shutdown_timeout,
        # Keep the handlers installed by configure_logging; the request
        # middleware replaces uvicorn's access log
        log_config=None,
        access_log=False,
    )
    logger.info("Exiting server gracefully...")


if __name__ == "__main__":
    main()
