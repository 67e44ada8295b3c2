"""
=============================================================================
COMMAND LINE ENTRY POINT
=============================================================================

    python -m tinyhttpd                          # port 4221, files from .
    python -m tinyhttpd --directory /tmp/data    # serve /files/ from /tmp/data
    python -m tinyhttpd --port 0                 # any free port
    tinyhttpd --log-level DEBUG                  # installed console script

Defaults come from ServerConfig.from_env(), so TINYHTTPD_* environment
variables apply unless a flag overrides them.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_LEVELS, ServerConfig
from .server import HTTPServer


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tinyhttpd",
        description="Small HTTP/1.1 server: echo, user-agent and file storage.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tinyhttpd --directory /tmp/data
  python -m tinyhttpd --host 0.0.0.0 --port 8080
  python -m tinyhttpd --timeout 30 --complete-body
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on, 0 for any free port (default: {defaults.port})"
    )

    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=defaults.read_timeout,
        help=f"Seconds of client silence before a connection is closed (default: {defaults.read_timeout:g})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--directory", "-d",
        default=defaults.directory,
        help=f"Directory served under /files/ (default: {defaults.directory})"
    )

    parser.add_argument(
        "--allow-traversal",
        action="store_true",
        help="Join file names onto the directory without refusing names that escape it"
    )

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--complete-body",
        action="store_true",
        help="Wait for Content-Length body bytes instead of taking what arrived with the headers"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level})"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"tinyhttpd {__version__}"
    )

    return parser


def config_from_args(argv: Optional[List[str]] = None) -> ServerConfig:
    """Parse `argv` into a ServerConfig layered over the environment."""
    defaults = ServerConfig.from_env()
    args = build_parser(defaults).parse_args(argv)

    return ServerConfig(
        host=args.host,
        port=args.port,
        directory=args.directory,
        read_timeout=args.timeout,
        log_level=args.log_level,
        complete_body=args.complete_body,
        confine_files=not args.allow_traversal,
    )


def main(argv: Optional[List[str]] = None):
    """Parse arguments, build the server and run it until interrupted."""
    try:
        config = config_from_args(argv)
        server = HTTPServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Listening on {config.host}:{config.port}, serving files from {config.directory}")

    try:
        server.run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
