"""Command-line entry for orgcal_lite."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_server


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for orgcal_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="orgcal_lite",
        description="orgcal_lite - unified organization calendar timeline server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m orgcal_lite                              # Start server on default port (8080)
  python -m orgcal_lite --port 3000                  # Start server on port 3000
  python -m orgcal_lite --data-file ./calendar.json  # Load and persist calendar data
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or from ORGCAL_WEB_PORT env var)",
    )
    parser.add_argument(
        "--data-file",
        dest="data_file",
        metavar="PATH",
        help="JSON calendar data file (default: in-memory, or from ORGCAL_DATA_FILE env var)",
    )

    return parser


def main() -> NoReturn:
    """Run the orgcal_lite CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    try:
        run_server(args)
    except KeyboardInterrupt:
        sys.exit(130)
    sys.exit(0)


if __name__ == "__main__":
    main()
