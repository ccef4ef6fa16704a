"""Command-line entry for ics_ingest.

Reads one ICS feed from a file (or stdin) and prints the canonical events as
JSON on stdout. Diagnostics go to the log on stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import NoReturn, Optional, Union

from .config import load_config
from .exceptions import ConfigError
from .ingest_logging import configure_logging
from .ingestor import ICSIngestor

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BAD_INPUT = 2


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for ics_ingest CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="ics_ingest",
        description="ICS Ingest - normalize an iCalendar feed into canonical events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m ics_ingest calendar.ics               # Print events as JSON
  python -m ics_ingest --report calendar.ics      # Print events, stats and diagnostics
  curl -s $URL | python -m ics_ingest -           # Read the feed from stdin
        """,
    )

    parser.add_argument(
        "source",
        metavar="FILE",
        help="Path to an .ics file, or '-' to read from stdin",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="YAML/JSON config file (default: $ICS_INGEST_CONFIG)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Print the full ingestion report instead of the event list",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        metavar="N",
        help="JSON indentation (default: 2)",
    )

    return parser


def _read_source(source: str) -> Union[str, bytes]:
    """Read the feed from ``source`` ('-' for stdin).

    Raises:
        OSError: If the file cannot be read
    """
    if source == "-":
        return sys.stdin.read()
    with open(source, "rb") as f:
        return f.read()


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the ics_ingest CLI.

    Exits 0 whenever the feed was read, even if events were dropped; exits 2
    when the input file or the config file cannot be read.
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (ConfigError, OSError) as exc:
        print(f"ics_ingest: cannot load config: {exc}", file=sys.stderr)
        sys.exit(EXIT_BAD_INPUT)

    configure_logging(debug_mode=args.debug)
    if not args.debug and not os.getenv("ICS_INGEST_LOG_LEVEL"):
        logging.getLogger().setLevel(config.log_level)

    try:
        text = _read_source(args.source)
    except OSError as exc:
        print(f"ics_ingest: cannot read {args.source}: {exc}", file=sys.stderr)
        sys.exit(EXIT_BAD_INPUT)

    ingestor = ICSIngestor(config=config)
    if args.report:
        result = ingestor.ingest_with_report(text)
        payload = result.model_dump(mode="json", by_alias=True)
        logger.debug("Ingestion report: %d events", result.event_count)
    else:
        events = ingestor.ingest(text)
        payload = [event.model_dump(mode="json", by_alias=True) for event in events]

    print(json.dumps(payload, indent=args.indent if args.indent > 0 else None))
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
