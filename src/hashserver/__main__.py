"""
=============================================================================
HASH SERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (0.0.0.0:59999, SHA-256, 2 KB reads)
    python -m hashserver

    # Custom port
    python -m hashserver --port 60000

    # Smaller read chunks, more workers, chattier logs
    python -m hashserver -p 60000 --buffer-size 512 --workers 8 -l DEBUG

    # Try it
    printf '1\\r\\n22\\r\\n' | nc localhost 59999

=============================================================================
EXIT STATUS
=============================================================================

    0   Server ran and was stopped
    1   --help was requested, or the port could not be bound
    2   Invalid arguments or configuration (nothing was started)

=============================================================================
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .config import MAX_PORT, MIN_PORT, LOG_LEVELS, ServerConfig
from .digest import available_algorithms
from .errors import ConfigError, ListenerError, PortError
from .server import HashServer


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (help is handled by main())."""
    parser = argparse.ArgumentParser(
        prog="hashserver",
        description="TCP service answering every newline-terminated record "
                    "with its hex digest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="""
Examples:
  hashserver                          # Listen on port 59999
  hashserver --port 60000             # Custom port
  hashserver --algorithm sha512       # Different digest
  hashserver --buffer-size 1 -l DEBUG # Stress record reassembly
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--port", "-p",
        default=None,
        help=f"Serve at the specified TCP port number, must be in the range "
             f"{MIN_PORT}-{MAX_PORT} (default: 59999)",
    )

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Address to bind to (default: 0.0.0.0)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # ENGINE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (default: CPU count)",
    )

    parser.add_argument(
        "--buffer-size", "-b",
        type=int,
        default=None,
        help="Bytes read from a connection at a time (default: 2048)",
    )

    parser.add_argument(
        "--algorithm", "-a",
        choices=available_algorithms(),
        default=None,
        metavar="NAME",
        help="Digest algorithm (default: sha256)",
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=list(LOG_LEVELS),
        default=None,
        help="Logging level (default: INFO)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--help", "-h",
        action="store_true",
        help="Produce this help message",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"hashserver {__version__}",
    )

    return parser


def parse_port(value: str) -> int:
    """
    Parse a listen port given on the command line.

    Raises:
        PortError: If it is not an integer in MIN_PORT..MAX_PORT.
    """
    try:
        port = int(value)
    except ValueError:
        raise PortError("Port must be an integer", value) from None

    if not MIN_PORT <= port <= MAX_PORT:
        raise PortError(f"Port must be in the range {MIN_PORT}-{MAX_PORT}", value)

    return port


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then whatever was given on the command line."""
    config = ServerConfig.from_env()

    if args.port is not None:
        config.port = parse_port(args.port)
    if args.host is not None:
        config.host = args.host
    if args.workers is not None:
        config.workers = args.workers
    if args.buffer_size is not None:
        config.buffer_size = args.buffer_size
    if args.algorithm is not None:
        config.algorithm = args.algorithm
    if args.log_level is not None:
        config.log_level = args.log_level

    config.validate()
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit status (see module docstring).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.help:
        parser.print_help()
        return 1

    try:
        config = build_config(args)
    except PortError as e:
        print(f"Invalid port number: {e.value} {e}", file=sys.stderr)
        return 2
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(f"Port was set to {config.port}.")
    print("To get help on program options use: hashserver -h")

    try:
        HashServer(config).run()
    except ListenerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
