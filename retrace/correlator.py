"""
correlator.py — Correlation engine for retrace.

Consumes trace events one at a time and re-derives the semantic operation
behind them:
  1. Buffer a run of related events in a single pending group.
  2. Decide whether each new event extends that group.
  3. When it doesn't (or the input ends), resolve the group into one or
     more Actions: a directory rename/move, a file rename/move, or a plain
     replay of Added/Deleted actions.

The correlator never writes output itself.  ``ingest`` and ``finalize``
return the actions they resolved; ``interpret`` forwards them to a sink.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Iterable

from retrace.events import Action, ActionKind, Event, parent_of

logger = logging.getLogger(__name__)

ActionSink = Callable[[Action], None]


class CorrelatorClosedError(RuntimeError):
    """Raised when an event is ingested after ``finalize()``."""


def determine_move_or_rename(old_path: str, new_path: str) -> ActionKind:
    """Same parent directory means a rename, anything else a move."""
    if parent_of(old_path) == parent_of(new_path):
        return ActionKind.RENAMED
    return ActionKind.MOVED


def is_continuation(group: list[Event], event: Event) -> bool:
    """Return ``True`` if the create *event* extends the pending *group*.

    Rules, first match wins:
      1. A directory create following a directory delete.
      2. A file created directly inside the group's most recent directory,
         carrying a signature already seen in the group.
      3. A file created with the same signature as the group's first file.
    """
    first = group[0]

    if event.is_directory and first.is_directory and first.is_delete:
        return True

    if not event.is_directory:
        last_dir = next((e for e in reversed(group) if e.is_directory), None)
        if last_dir is not None and last_dir.path == event.parent_path:
            if any(e.signature == event.signature for e in group):
                return True

    return not first.is_directory and first.signature == event.signature


def _match_directory_transaction(
    group: list[Event],
) -> tuple[str, str, list[Event]] | None:
    """Check whether *group* is a whole-directory rename/move.

    Returns ``(old_dir, new_dir, leftovers)`` on success, where
    ``leftovers`` are the deletions no create ever matched, in arrival
    order.  Returns ``None`` if the group is not a directory transaction.
    """
    deleted: dict[str, Deque[Event]] = {}
    old_dir: str | None = None
    new_dir: str | None = None

    for event in group:
        if event.is_delete:
            if event.is_directory:
                old_dir = event.path
            deleted.setdefault(event.signature, deque()).append(event)
            continue

        queue = deleted.get(event.signature)
        if not queue:
            return None
        match = queue.popleft()

        if event.is_directory:
            new_dir = event.path
            continue

        if old_dir is None or new_dir is None:
            return None
        if not match.path.startswith(old_dir + "/"):
            return None
        if new_dir + match.path[len(old_dir):] != event.path:
            return None

    if old_dir is None or new_dir is None:
        return None

    unmatched = {id(e) for queue in deleted.values() for e in queue}
    leftovers = [e for e in group if id(e) in unmatched]
    return old_dir, new_dir, leftovers


class Correlator:
    """Single-pass state machine turning trace events into actions.

    At most one group of unresolved events is pending at any time; every
    path that would open a second group resolves the current one first.
    """

    def __init__(self) -> None:
        self._pending: list[Event] | None = None
        self._last_resolved: Event | None = None
        self._subsumed: list[Event] = []
        self._closed = False

    @property
    def pending(self) -> tuple[Event, ...]:
        """Events buffered in the open group (empty if none)."""
        return tuple(self._pending or ())

    @property
    def last_resolved(self) -> Event | None:
        return self._last_resolved

    @property
    def subsumed(self) -> tuple[Event, ...]:
        """Events accounted for by another event's action, in resolution order."""
        return tuple(self._subsumed)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ingest(self, event: Event) -> list[Action]:
        """Feed the next event in stream order.

        Returns:
            The actions resolved as a consequence of this event, in
            emission order.  Often empty while a group is still open.

        Raises:
            CorrelatorClosedError: If ``finalize()`` was already called.
        """
        if self._closed:
            raise CorrelatorClosedError("Cannot ingest events after finalize()")

        out: list[Action] = []
        if event.is_delete:
            self._ingest_delete(event, out)
        else:
            self._ingest_create(event, out)
        return out

    def finalize(self) -> list[Action]:
        """Resolve whatever is still pending.  Further ingestion is refused."""
        out: list[Action] = []
        if not self._closed:
            self._flush(out)
            self._closed = True
        return out

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _ingest_delete(self, event: Event, out: list[Action]) -> None:
        if event.is_directory:
            self._flush(out)
            self._open(event)
            return

        if self._pending is not None:
            first = self._pending[0]
            if first.is_directory and first.is_delete and first.path == event.parent_path:
                self._pending.append(event)
                return
            self._flush(out)

        last = self._last_resolved
        if (
            last is not None
            and last.is_directory
            and last.is_delete
            and event.is_under(last.path)
        ):
            logger.debug("Suppressed %s: implied by deletion of %s", event.path, last.path)
            self._subsumed.append(event)
            return
        self._open(event)

    def _ingest_create(self, event: Event, out: list[Action]) -> None:
        if self._pending is not None:
            if is_continuation(self._pending, event):
                self._pending.append(event)
                return
            self._flush(out)

        self._emit(Action.standalone(event), out)
        self._last_resolved = event

    def _open(self, event: Event) -> None:
        logger.debug("Opened group at %s", event.path)
        self._pending = [event]

    def _flush(self, out: list[Action]) -> None:
        if self._pending is None:
            return
        group, self._pending = self._pending, None
        self._resolve(group, out)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self, group: list[Event], out: list[Action]) -> None:
        logger.debug("Resolving group of %d event(s) starting at %s", len(group), group[0].path)
        first = group[0]

        if len(group) == 1:
            self._emit(Action.standalone(first), out)
            self._last_resolved = first
            return

        directory = _match_directory_transaction(group)
        if directory is not None:
            old_dir, new_dir, leftovers = directory
            kind = determine_move_or_rename(old_dir, new_dir)
            self._emit(Action(kind, first, f"{old_dir} to {new_dir}"), out)
            leftover_ids = {id(e) for e in leftovers}
            self._subsumed.extend(e for e in group[1:] if id(e) not in leftover_ids)
            for event in leftovers:
                self._emit(Action.standalone(event), out)
            self._last_resolved = first
            return

        if (
            len(group) == 2
            and not first.is_directory
            and group[1].signature == first.signature
        ):
            second = group[1]
            kind = determine_move_or_rename(first.path, second.path)
            self._emit(Action(kind, first, f"{first.path} to {second.path}"), out)
            self._subsumed.append(second)
            self._last_resolved = first
            return

        self._replay(group, out)

    def _replay(self, group: list[Event], out: list[Action]) -> None:
        """Report each event on its own, skipping direct children of a
        directory deletion that was just reported."""
        previous: Event | None = None
        for event in group:
            if (
                event.is_delete
                and previous is not None
                and previous.is_directory
                and previous.is_delete
                and previous.path == event.parent_path
            ):
                self._subsumed.append(event)
                continue
            self._emit(Action.standalone(event), out)
            previous = event
            self._last_resolved = event

    @staticmethod
    def _emit(action: Action, out: list[Action]) -> None:
        logger.debug("%s %s", action.kind.value, action.details)
        out.append(action)


# -----------------------------------------------------------------------
# Driver
# -----------------------------------------------------------------------

def interpret(events: Iterable[Event], sink: ActionSink) -> int:
    """Run *events* through a fresh Correlator, passing each action to *sink*.

    Returns:
        The number of actions emitted.
    """
    correlator = Correlator()
    count = 0
    for event in events:
        for action in correlator.ingest(event):
            sink(action)
            count += 1
    for action in correlator.finalize():
        sink(action)
        count += 1
    return count
