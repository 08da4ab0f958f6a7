"""Command-line interface for the Duty-Free POS MCP Server."""

import argparse
import asyncio
import os
import sys
from typing import Optional, Sequence

from . import __version__
from .exceptions import ConfigurationError
from .models import Currency

# Command-line options that override POS_* environment variables
ENV_OVERRIDES = {
    "api_url": "POS_API_URL",
    "currency": "POS_DEFAULT_CURRENCY",
    "log_level": "POS_LOG_LEVEL",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dutyfree-pos-server",
        description="Duty-Free POS MCP Server - cart, pricing and checkout over the POS API",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--mode",
        choices=["stdio", "http"],
        default="stdio",
        help="Server mode: stdio (for MCP clients) or http (REST API)",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="HTTP server host (only for http mode, default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="HTTP server port (only for http mode, default: 8000)",
    )
    parser.add_argument("--api-url", help="POS API root (overrides POS_API_URL)")
    parser.add_argument(
        "--currency",
        choices=[c.value for c in Currency],
        help="Currency a new till starts in (overrides POS_DEFAULT_CURRENCY)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (overrides POS_LOG_LEVEL)",
    )
    return parser


def apply_overrides(args: argparse.Namespace, environ=None) -> None:
    """Copy the given options into the environment read by Settings.from_env."""
    env = os.environ if environ is None else environ
    for option, variable in ENV_OVERRIDES.items():
        value = getattr(args, option, None)
        if value:
            env[variable] = value


def main(argv: Optional[Sequence[str]] = None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    apply_overrides(args)

    try:
        if args.mode == "stdio":
            from .server import main as server_main

            asyncio.run(server_main())
        else:
            from .http_server import run_http_server

            print(f"Starting Duty-Free POS HTTP Server on {args.host}:{args.port}", file=sys.stderr)
            print(f"API documentation available at http://{args.host}:{args.port}/docs", file=sys.stderr)
            run_http_server(host=args.host, port=args.port)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("\nShutting down...", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    main()
