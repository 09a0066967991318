"""Tests for the table report sink."""

from __future__ import annotations

import io
import re
from datetime import timezone

from colorama import Fore, Style

from retrace.events import Action, ActionKind, Event, EventKind
from retrace.report import (
    DETAILS_COLUMN_WIDTH,
    RULE_WIDTH,
    ActionCollector,
    TableReport,
    format_timestamp,
    wrap_details,
)

RULE = "-" * RULE_WIDTH
_ANSI = re.compile(r"\x1b\[[0-9;]*m")


def _rename(details: str = "/a/x to /a/y") -> Action:
    event = Event(EventKind.DELETE, 1, "/a/x", "AAAAAAAA")
    return Action(ActionKind.RENAMED, event, details)


def _lines(stream: io.StringIO) -> list[str]:
    return stream.getvalue().splitlines()


def test_format_timestamp_epoch_millis():
    assert format_timestamp(1, timezone.utc) == "Jan 01 1970 00:00:00:001"
    assert format_timestamp(1500000000123, timezone.utc) == "Jul 14 2017 02:40:00:123"


def test_format_timestamp_out_of_range_falls_back_to_raw():
    assert format_timestamp(10**30, timezone.utc) == str(10**30)


def test_wrap_details():
    assert wrap_details("") == [""]
    assert wrap_details("x" * DETAILS_COLUMN_WIDTH) == ["x" * DETAILS_COLUMN_WIDTH]
    chunks = wrap_details("y" * 120)
    assert [len(c) for c in chunks] == [51, 51, 18]


def test_header():
    out = io.StringIO()
    TableReport(out).write_header()
    lines = _lines(out)

    assert lines[0] == lines[2] == RULE
    assert lines[1] == (
        "|Occurence                 |Event    |Type     |Details"
        + " " * (DETAILS_COLUMN_WIDTH - len("Details"))
        + "|"
    )
    assert len(lines[1]) == RULE_WIDTH


def test_single_row():
    out = io.StringIO()
    report = TableReport(out, tz=timezone.utc)
    report.write(_rename())

    assert _lines(out) == [
        "|Jan 01 1970 00:00:00:001  |Renamed  |file     |"
        + "/a/x to /a/y".ljust(DETAILS_COLUMN_WIDTH)
        + "|",
        RULE,
    ]
    assert report.rows_written == 1


def test_long_details_wrap_onto_continuation_rows():
    details = "/" + "d" * 60 + " to /" + "e" * 60
    out = io.StringIO()
    TableReport(out, tz=timezone.utc).write(_rename(details))
    lines = _lines(out)

    assert len(lines) == 4
    assert lines[-1] == RULE
    for line in lines[1:3]:
        assert line.startswith("|" + " " * 26 + "|" + " " * 9 + "|" + " " * 9 + "|")
    text = "".join(line[-DETAILS_COLUMN_WIDTH - 1:-1] for line in lines[:3]).rstrip()
    assert text == details
    assert all(len(line) == RULE_WIDTH for line in lines)


def test_color_keeps_layout():
    plain, coloured = io.StringIO(), io.StringIO()
    TableReport(plain, tz=timezone.utc).write(_rename())
    TableReport(coloured, color=True, tz=timezone.utc).write(_rename())

    assert Fore.YELLOW in coloured.getvalue()
    assert Style.RESET_ALL in coloured.getvalue()
    assert _ANSI.sub("", coloured.getvalue()) == plain.getvalue()


def test_report_is_a_sink():
    out = io.StringIO()
    report = TableReport(out, tz=timezone.utc)
    report(_rename())
    assert "Renamed" in out.getvalue()


def test_collector():
    collector = ActionCollector()
    collector(_rename())
    assert collector.summary() == [("Renamed", "/a/x to /a/y")]
