"""CLI entry point for apicheck-routes: compare the router with the OpenAPI document."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from apicheck.config import ApiCheckConfig, apply_env_overrides, load_config, load_env_file
from apicheck.errors import StartupError
from apicheck.openapi.consistency import check_app_against_document
from apicheck.openapi.loader import load_openapi_document
from apicheck.server import create_app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="apicheck-routes",
        description="Report paths and methods present in only one of router and OpenAPI document",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="YAML configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "--env-file", type=Path, default=None,
        help="Env file to load first; it must exist when given",
    )
    parser.add_argument(
        "--spec", type=Path, default=None,
        help="OpenAPI document (overrides config)",
    )
    parser.add_argument(
        "--variant", choices=["records", "errors"], default=None,
        help="Router variant to check (overrides config)",
    )
    parser.add_argument(
        "--include-hidden", action="store_true", default=False,
        help="Also compare routes hidden from the schema (e.g. /metrics)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        if args.env_file is not None:
            load_env_file(args.env_file)
        config = load_config(args.config) if args.config is not None else ApiCheckConfig()
        config = apply_env_overrides(config)
    except FileNotFoundError:
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        return 1
    except StartupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code

    if args.variant is not None:
        config.server.variant = args.variant
    spec_path = args.spec
    if spec_path is None:
        spec_path = config.openapi.resolved_path(config.server.variant)

    try:
        document = load_openapi_document(spec_path)
    except StartupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code

    app = create_app(config)
    report = check_app_against_document(app, document, include_hidden=args.include_hidden)

    if not report.ok:
        print("Route discrepancies found:", file=sys.stderr)
        print(report.format(), file=sys.stderr)
        return 1

    print(f"Router matches {spec_path}", file=sys.stderr)
    return 0


def entry_point() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    entry_point()
