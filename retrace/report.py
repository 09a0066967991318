"""
report.py — Action sinks for retrace.

``TableReport`` renders resolved actions as a fixed-width table:

    ----------------------------------------------------------------------------------------------------
    |Occurence                 |Event    |Type     |Details                                            |
    ----------------------------------------------------------------------------------------------------
    |Jan 01 1970 00:00:00:001  |Renamed  |file     |/a/x to /a/y                                       |
    ----------------------------------------------------------------------------------------------------

Details wider than their column continue on extra rows with the leading
columns left blank.  ``ActionCollector`` just keeps the actions in memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import TextIO

from colorama import Fore, Style

from retrace.events import Action, ActionKind

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------
TIME_COLUMN_WIDTH = 26
ACTION_COLUMN_WIDTH = 9
TYPE_COLUMN_WIDTH = 9
DETAILS_COLUMN_WIDTH = 51
RULE_WIDTH = 100

DATE_FORMAT = "%b %d %Y %H:%M:%S"

ACTION_COLOURS = {
    ActionKind.ADDED: Fore.GREEN,
    ActionKind.DELETED: Fore.RED,
    ActionKind.RENAMED: Fore.YELLOW,
    ActionKind.MOVED: Fore.CYAN,
}


def _rule(char: str = "-", width: int = RULE_WIDTH) -> str:
    return char * width


def format_timestamp(timestamp: int, tz: tzinfo | None = None) -> str:
    """Render epoch milliseconds as ``MMM dd yyyy HH:mm:ss:SSS``.

    Timestamps outside the platform's datetime range are shown as the raw
    number.
    """
    seconds, millis = divmod(timestamp, 1000)
    try:
        moment = datetime.fromtimestamp(seconds, tz)
    except (OverflowError, OSError, ValueError):
        logger.debug("Timestamp %d out of range; rendering raw value.", timestamp)
        return str(timestamp)
    return f"{moment.strftime(DATE_FORMAT)}:{millis:03d}"


def wrap_details(text: str, width: int = DETAILS_COLUMN_WIDTH) -> list[str]:
    """Split *text* into *width*-sized chunks (at least one, possibly empty)."""
    return [text[i:i + width] for i in range(0, len(text), width)] or [""]


class TableReport:
    """Writes actions to *stream* as table rows.

    Parameters:
        stream: Text stream to write to (usually ``sys.stdout``).
        color:  Colour the Event column by action kind.
        tz:     Time zone for the Occurence column (local time if ``None``).

    Instances are callable, so a report can be passed anywhere an action
    sink is expected.
    """

    def __init__(self, stream: TextIO, color: bool = False, tz: tzinfo | None = None) -> None:
        self._stream = stream
        self.color = color
        self.tz = tz
        self.rows_written = 0

    def write_header(self) -> None:
        self._line(_rule())
        self._row("Occurence", "Event", "Type", "Details")
        self._line(_rule())

    def write(self, action: Action) -> None:
        chunks = wrap_details(action.details)
        self._row(
            format_timestamp(action.event.timestamp, self.tz),
            self._action_cell(action.kind),
            action.event.file_type,
            chunks[0],
        )
        for chunk in chunks[1:]:
            self._row("", "", "", chunk)
        self._line(_rule())
        self.rows_written += 1

    __call__ = write

    def _action_cell(self, kind: ActionKind) -> str:
        cell = kind.value.ljust(ACTION_COLUMN_WIDTH)
        if self.color:
            # Pad first so the escape codes don't eat into the column width
            return f"{ACTION_COLOURS[kind]}{cell}{Style.RESET_ALL}"
        return cell

    def _row(self, occurred: str, action: str, file_type: str, details: str) -> None:
        self._line(
            "|" + occurred.ljust(TIME_COLUMN_WIDTH)
            + "|" + action.ljust(ACTION_COLUMN_WIDTH)
            + "|" + file_type.ljust(TYPE_COLUMN_WIDTH)
            + "|" + details.ljust(DETAILS_COLUMN_WIDTH)
            + "|"
        )

    def _line(self, text: str) -> None:
        self._stream.write(text + "\n")


@dataclass
class ActionCollector:
    """In-memory sink; handy for tests and programmatic callers."""

    actions: list[Action] = field(default_factory=list)

    def __call__(self, action: Action) -> None:
        self.actions.append(action)

    def summary(self) -> list[tuple[str, str]]:
        """``(kind, details)`` pairs in emission order."""
        return [(a.kind.value, a.details) for a in self.actions]
