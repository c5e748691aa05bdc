"""CLI entry point for running a search source.

Usage:
    python -m searchfeed ./search.yaml
    python -m searchfeed ./search.yaml --once
    python -m searchfeed ./search.yaml --max-ticks 10 --json-logs
    python -m searchfeed ./search.yaml --check

Records are written as JSON lines to the configured output (stdout by
default). Logs go to stderr. SIGINT or SIGTERM stops the source after the
current tick; waits are interrupted immediately.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from searchfeed import __version__
from searchfeed.lib.builder import build_resources, build_search_source
from searchfeed.lib.config import load_config
from searchfeed.lib.emitter import create_sink
from searchfeed.lib.env import load_env_file
from searchfeed.lib.errors import ConfigurationError
from searchfeed.lib.logging import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="searchfeed",
        description="Poll the Twitter recent-search API and emit new tweets as JSON lines.",
    )
    parser.add_argument("config", help="Path to the YAML configuration file")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick and exit",
    )
    parser.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="Stop after this many ticks",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate the configuration and exit",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Load environment variables from this .env file first",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Write logs as JSON")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Set stop_event on SIGINT/SIGTERM for a graceful shutdown."""

    def handler(signum: int, frame: object) -> None:
        logger.info("Received signal %d, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(verbose=args.verbose, json_format=args.json_logs, log_file=args.log_file)

    load_env_file(args.env_file)

    stop_event = threading.Event()

    try:
        config = load_config(args.config)
        resources = build_resources(config)
        source = build_search_source(config.search, resources, stop_event=stop_event)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR

    if args.check:
        source.close()
        print(f"Configuration OK: {config.search.describe()}")
        return EXIT_OK

    try:
        sink = create_sink(config.output)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR

    install_signal_handlers(stop_event)

    max_ticks = 1 if args.once else args.max_ticks

    try:
        with sink:
            source.run(sink, max_ticks=max_ticks)
    finally:
        source.close()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
