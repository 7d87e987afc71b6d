"""
Command-line entry point.

    python -m mediabridge --library ~/Pictures
    mediabridge --port 44556 --log-level DEBUG --log-format json

Flags override MEDIABRIDGE_* environment variables, which override the
defaults in BridgeConfig.
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from . import __version__
from .app import create_app
from .config import BridgeConfig, LOG_FORMATS, LOG_LEVELS
from .media import FolderMediaStore, LibraryIndex


logger = logging.getLogger("mediabridge")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediabridge",
        description="Serve a local media library to an editor plugin over loopback HTTP.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m mediabridge                         # Serve the current directory
  python -m mediabridge --library ~/Pictures     # Serve a photo folder
  python -m mediabridge --port 45000            # Custom port
  python -m mediabridge -l DEBUG --log-format json
        """,
    )
    parser.add_argument(
        "--host", "-H",
        help="Loopback address to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on (default: 44556)",
    )
    parser.add_argument(
        "--library", "-L",
        help="Folder to serve (default: current directory)",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Maximum number of worker threads (default: 16)",
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        help="Access log format (default: text)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> BridgeConfig:
    """Environment first, then any flag that was given."""
    config = BridgeConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.library is not None:
        config.library_path = args.library
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        config.validate()
    except ValueError as e:
        print(f"mediabridge: {e}", file=sys.stderr)
        return 2

    store = FolderMediaStore(config.library_path or ".", workers=config.export_workers)
    index = LibraryIndex(store, staleness_seconds=config.staleness_seconds)
    server = create_app(config, store, index=index)
    server.on_shutdown(store.close)

    # Warm the index in the background; early requests see an empty library.
    index.reload()

    try:
        server.run()
    except OSError as e:
        logger.error(f"Could not start: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
