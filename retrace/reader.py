"""
reader.py — Trace record source for retrace.

Parses the raw trace into validated ``Event`` objects.  The trace format is:

    <N>
    <kind> <timestamp> <path> <signature>     (N lines)

where *kind* is ``add`` or ``del`` (any case), *timestamp* is a
non-negative integer, *path* is absolute and free of reserved characters,
and *signature* is an 8-character alphanumeric fingerprint or ``-`` for a
directory.

Malformed lines and lines whose timestamp goes backwards are dropped; both
still count against the declared N.
"""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass
from typing import TextIO

from retrace.events import DIRECTORY_SIGNATURE, Event, EventKind

logger = logging.getLogger(__name__)

RESERVED_PATH_CHARS = frozenset("$^*%#@!();:\\<>?,&")
SIGNATURE_LENGTH = 8
_SIGNATURE_CHARS = frozenset(string.ascii_letters + string.digits)
_KINDS = {kind.value: kind for kind in EventKind}


class TraceFormatError(ValueError):
    """Raised when a trace line does not match the record grammar."""


@dataclass
class ReadStats:
    """Bookkeeping for one pass over a trace."""

    declared: int = 0
    accepted: int = 0
    malformed: int = 0
    out_of_order: int = 0
    truncated: bool = False


# ---------------------------------------------------------------------------
# Line grammar
# ---------------------------------------------------------------------------

def parse_line(text: str) -> Event:
    """Tokenize and validate a single trace line.

    Raises:
        TraceFormatError: If the line is not exactly four valid fields.
    """
    tokens = text.split()
    if len(tokens) != 4:
        raise TraceFormatError(f"expected 4 fields, got {len(tokens)}")

    raw_kind, raw_timestamp, path, signature = tokens

    kind = _KINDS.get(raw_kind.lower())
    if kind is None:
        raise TraceFormatError(f"unknown event kind: {raw_kind!r}")

    if not (raw_timestamp.isascii() and raw_timestamp.isdigit()):
        raise TraceFormatError(f"invalid timestamp: {raw_timestamp!r}")

    _validate_path(path)
    _validate_signature(signature)

    return Event(kind=kind, timestamp=int(raw_timestamp), path=path, signature=signature)


def _validate_path(path: str) -> None:
    if len(path) < 2 or path[0] != "/":
        raise TraceFormatError(f"path must be absolute: {path!r}")
    if "" in path[1:].split("/"):
        raise TraceFormatError(f"path has an empty segment: {path!r}")
    # Undecodable input bytes arrive as lone surrogates
    if any("\ud800" <= ch <= "\udfff" for ch in path):
        raise TraceFormatError(f"path is not valid UTF-8: {path!r}")
    bad = RESERVED_PATH_CHARS.intersection(path)
    if bad:
        raise TraceFormatError(f"path contains reserved characters {sorted(bad)}: {path!r}")


def _validate_signature(signature: str) -> None:
    if signature == DIRECTORY_SIGNATURE:
        return
    if len(signature) != SIGNATURE_LENGTH or not _SIGNATURE_CHARS.issuperset(signature):
        raise TraceFormatError(f"invalid content signature: {signature!r}")


# ---------------------------------------------------------------------------
# Stream reading
# ---------------------------------------------------------------------------

def _read_count(stream: TextIO) -> int:
    text = stream.readline().strip()
    if not (text.isascii() and text.isdigit()):
        logger.warning("Invalid event count %r; no events will be read.", text)
        return 0
    return int(text)


def read_trace(stream: TextIO) -> tuple[list[Event], ReadStats]:
    """Read a whole trace from *stream*.

    Returns:
        The accepted events, in order, plus a :class:`ReadStats` summary.
        An I/O error or premature end of input stops reading early; the
        events read so far are still returned.
    """
    stats = ReadStats()
    events: list[Event] = []
    last: Event | None = None

    try:
        stats.declared = _read_count(stream)
        for lineno in range(2, stats.declared + 2):
            line = stream.readline()
            if not line:
                logger.warning(
                    "Input ended after %d of %d declared event lines.",
                    lineno - 2,
                    stats.declared,
                )
                stats.truncated = True
                break

            try:
                event = parse_line(line)
            except TraceFormatError as exc:
                logger.debug("Dropped line %d: %s", lineno, exc)
                stats.malformed += 1
                continue

            if last is not None and event.timestamp < last.timestamp:
                logger.debug(
                    "Dropped line %d: timestamp %d precedes %d",
                    lineno,
                    event.timestamp,
                    last.timestamp,
                )
                stats.out_of_order += 1
                continue

            events.append(event)
            last = event
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Failed to read input, keeping %d event(s): %s", len(events), exc)
        stats.truncated = True

    stats.accepted = len(events)
    return events, stats


def read_events(stream: TextIO) -> list[Event]:
    """Convenience wrapper around :func:`read_trace` returning only events."""
    events, _ = read_trace(stream)
    return events
