#!/usr/bin/env python3
"""
retrace_main.py — CLI entry point for retrace.

Reads a filesystem change trace from standard input, re-derives the
operations behind it (Added / Deleted / Renamed / Moved) and prints them as
a table on standard output.  Diagnostics go to standard error; the exit
status is 0 even when some trace lines were malformed.

Usage
-----
    retrace < trace.txt
    python -m retrace.retrace_main --no-color < trace.txt
"""

from __future__ import annotations

import argparse
import io
import logging
import sys
from typing import Sequence

from colorama import just_fix_windows_console

from retrace.correlator import interpret
from retrace.reader import read_trace
from retrace.report import TableReport

logger = logging.getLogger("retrace")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.  Every option is optional."""
    parser = argparse.ArgumentParser(
        prog="retrace",
        description="retrace — Reconstruct file operations from a change trace on stdin.",
    )
    parser.add_argument(
        "--color",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Colour the Event column (default: only when stdout is a terminal).",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every dropped line and resolved group to stderr.",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log errors to stderr.",
    )
    return parser


def _log_level(args: argparse.Namespace) -> int:
    if args.verbose:
        return logging.DEBUG
    if args.quiet:
        return logging.ERROR
    return logging.WARNING


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Sequence[str] | None = None) -> int:
    """Parse CLI args, interpret stdin and write the report to stdout."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=_log_level(args), format=LOG_FORMAT)

    color = args.color if args.color is not None else sys.stdout.isatty()
    if color:
        just_fix_windows_console()

    # Undecodable bytes must reach the line grammar, not abort the read
    if isinstance(sys.stdin, io.TextIOWrapper):
        sys.stdin.reconfigure(errors="surrogateescape")

    events, stats = read_trace(sys.stdin)
    if stats.malformed or stats.out_of_order:
        logger.warning(
            "Dropped %d malformed and %d out-of-order line(s).",
            stats.malformed,
            stats.out_of_order,
        )

    report = TableReport(sys.stdout, color=color)
    report.write_header()
    count = interpret(events, report)
    sys.stdout.flush()

    logger.info(
        "Interpreted %d of %d declared event(s) into %d action(s).",
        stats.accepted,
        stats.declared,
        count,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
