"""
Pytest configuration and fixtures for retrace tests.
"""

from __future__ import annotations

from typing import Callable

import pytest

from retrace.correlator import interpret
from retrace.events import DIRECTORY_SIGNATURE, Event, EventKind
from retrace.report import ActionCollector


class EventFactory:
    """Builds events with auto-incrementing timestamps."""

    def __init__(self) -> None:
        self._clock = 0

    def _next(self) -> int:
        self._clock += 1
        return self._clock

    def add(self, path: str, signature: str = DIRECTORY_SIGNATURE) -> Event:
        return Event(EventKind.CREATE, self._next(), path, signature)

    def rm(self, path: str, signature: str = DIRECTORY_SIGNATURE) -> Event:
        return Event(EventKind.DELETE, self._next(), path, signature)


@pytest.fixture
def ev() -> EventFactory:
    """Event factory; omit the signature to get a directory event."""
    return EventFactory()


@pytest.fixture
def run() -> Callable[..., list[tuple[str, str]]]:
    """Interpret events and return ``(kind, details)`` pairs."""

    def _run(*events: Event) -> list[tuple[str, str]]:
        collector = ActionCollector()
        interpret(events, collector)
        return collector.summary()

    return _run
