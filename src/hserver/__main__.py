"""
=============================================================================
HSERVER CLI ENTRY POINT
=============================================================================

Runs a static file server with access logging:

    # Serve the current directory on localhost:8080
    python -m hserver

    # Custom port and directory
    python -m hserver --port 3000 --root ./public

    # Mount under a prefix, behind a reverse proxy
    python -m hserver --prefix /static --proxy

Configuration is read from the environment first (see
``AppConfig.from_env``) and then overridden by the flags given here.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .application import Application
from .config import AppConfig
from .middleware import AccessLogger, StaticFiles


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hserver",
        description="Static file server built on the hserver middleware toolkit",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m hserver                          # Serve . on 127.0.0.1:8080
  python -m hserver --port 3000 --root www   # Custom port and directory
  python -m hserver --host 0.0.0.0           # Listen on all interfaces
  python -m hserver --prefix /static         # Only answer under /static
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=None, help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None, help="Port to listen on (default: 8080)")
    parser.add_argument(
        "--proxy",
        action="store_true",
        help="Trust X-Forwarded-Host/-Proto/-For (only behind a reverse proxy)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # STATIC FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--root", "-r", default=".", help="Directory to serve (default: .)")
    parser.add_argument("--prefix", default="", help="URL prefix to serve under (default: none)")
    parser.add_argument("--max-age", type=int, default=0, help="Cache-Control max-age in seconds")
    parser.add_argument("--etag", action="store_true", help="Send ETags and answer If-None-Match")

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument("--log-format", choices=["text", "json"], default="text")
    parser.add_argument("--version", "-v", action="version", version=f"hserver {__version__}")

    return parser


def build_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.proxy:
        config.proxy = True
    if args.log_level is not None:
        config.log_level = args.log_level
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        app = Application(config)
        app.use(AccessLogger(log_format=args.log_format))
        app.use(StaticFiles(args.root, prefix=args.prefix, max_age=args.max_age, etag=args.etag))
    except ValueError as e:
        print(f"hserver: {e}", file=sys.stderr)
        return 2

    app.listen()
    return 0


if __name__ == "__main__":
    sys.exit(main())
