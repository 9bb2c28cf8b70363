"""Command-line interface for lancenter.

Provides the main entry point for running the gateway server or
attaching the local console to a gateway's SSH endpoint.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="lancenter",
        description="WebSocket terminal gateway",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/lancenter.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the gateway server")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    connect_parser = subparsers.add_parser(
        "connect", help="Attach this terminal to a gateway's SSH endpoint (Ctrl+] to leave)",
    )
    connect_parser.add_argument(
        "url", nargs="?", default=None,
        help="Gateway page URL, e.g. http://example.com:8080 (default: client.url)",
    )

    url_parser = subparsers.add_parser("url", help="Print the socket URL for a gateway page")
    url_parser.add_argument("url", nargs="?", default=None, help="Gateway page URL")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the lancenter CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from lancenter.config.settings import load_settings
    from lancenter.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        logger.info("Starting gateway server")
        from lancenter.endpoint.server import create_app
        import uvicorn
        if args.host:
            settings.server.host = args.host
        if args.port:
            settings.server.port = args.port
        app = create_app(settings)
        uvicorn.run(
            app,
            host=settings.server.host,
            port=settings.server.port,
        )

    elif args.command == "connect":
        from lancenter.bridge.client import run_client
        url = args.url or settings.client.url
        logger.info("Connecting to %s", url)
        try:
            asyncio.run(run_client(url, open_timeout=settings.client.open_timeout))
        except OSError as e:
            logger.error("Cannot attach to the console: %s", e)
            raise SystemExit(1) from e

    elif args.command == "url":
        from lancenter.domain.models import PageLocation, build_socket_url
        url = args.url or settings.client.url
        print(build_socket_url(PageLocation.from_url(url)))


if __name__ == "__main__":
    main()
