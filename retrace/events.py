"""
events.py — Shared event and action schema for retrace.

Defines the canonical ``Event`` dataclass that the record source emits and
the correlator consumes, and the ``Action`` dataclass the correlator emits
and the report layer renders.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath

# Signature value marking an event about a directory rather than file content
DIRECTORY_SIGNATURE = "-"


class EventKind(str, Enum):
    """Low-level change recorded in the trace."""

    CREATE = "add"
    DELETE = "del"


class ActionKind(str, Enum):
    """Semantic operation re-derived from one or more events."""

    ADDED = "Added"
    DELETED = "Deleted"
    RENAMED = "Renamed"
    MOVED = "Moved"


def parent_of(path: str) -> str:
    """Return *path* minus its final segment (``/a/b`` → ``/a``, ``/a`` → ``/``)."""
    return str(PurePosixPath(path).parent)


def is_under(child: str, parent: str) -> bool:
    """Return ``True`` if *child* lies strictly below *parent*.

    The comparison is segment-wise, so ``/ab`` is not under ``/a``.
    """
    if len(child) <= len(parent):
        return False
    parent_parts = [p for p in parent.split("/") if p]
    child_parts = [p for p in child.split("/") if p]
    if len(child_parts) < len(parent_parts):
        return False
    return all(a == b for a, b in zip(parent_parts, child_parts))


@dataclass(frozen=True)
class Event:
    """Represents a single record from a filesystem change trace.

    Attributes:
        kind:      ``EventKind.CREATE`` or ``EventKind.DELETE``.
        timestamp: Epoch milliseconds when the change occurred.
        path:      Absolute, slash-delimited path of the affected entry.
        signature: Content fingerprint, or ``DIRECTORY_SIGNATURE`` for a
                   directory.
    """

    kind: EventKind
    timestamp: int
    path: str
    signature: str

    @property
    def is_directory(self) -> bool:
        return self.signature == DIRECTORY_SIGNATURE

    @property
    def is_create(self) -> bool:
        return self.kind is EventKind.CREATE

    @property
    def is_delete(self) -> bool:
        return self.kind is EventKind.DELETE

    @property
    def parent_path(self) -> str:
        return parent_of(self.path)

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def file_type(self) -> str:
        """``"dir"`` or ``"file"``, as shown in the report's Type column."""
        return "dir" if self.is_directory else "file"

    def is_under(self, parent_path: str) -> bool:
        return is_under(self.path, parent_path)


@dataclass(frozen=True)
class Action:
    """A resolved semantic operation.

    Attributes:
        kind:    What the user did.
        event:   The representative event (the deletion for a rename/move).
        details: A single path for Added/Deleted, ``"old to new"`` otherwise.
    """

    kind: ActionKind
    event: Event
    details: str

    @classmethod
    def standalone(cls, event: Event) -> Action:
        """Build the Added/Deleted action reporting *event* on its own."""
        kind = ActionKind.ADDED if event.is_create else ActionKind.DELETED
        return cls(kind=kind, event=event, details=event.path)
