"""Backward navigation history."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from motif_flow.errors import EmptyHistoryError
from motif_flow.workflow.hooks import CleanupBucket
from motif_flow.workflow.state import HistoryRef


@dataclass
class HistoryEntry:
    """A node that was left and can be returned to.

    `exit_cleanups` holds what the node's `transition_out` hooks returned when
    it was left; they run when `go_back` re-enters it. `back_blocked` records
    whether the node itself had been entered across a unidirectional edge.
    """

    node_id: str
    input: Any
    exit_cleanups: CleanupBucket
    back_blocked: bool = False

    def ref(self) -> HistoryRef:
        return HistoryRef(node_id=self.node_id, input=self.input)


class HistoryStack:
    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def push(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def peek(self) -> HistoryEntry:
        if not self._entries:
            raise EmptyHistoryError("There is no previous step to go back to")
        return self._entries[-1]

    def pop(self) -> HistoryEntry:
        entry = self.peek()
        self._entries.pop()
        return entry

    def clear(self) -> None:
        """Drop every entry; their exit cleanups will never be replayed."""

        for entry in self._entries:
            entry.exit_cleanups.discard()
        self._entries.clear()

    def refs(self) -> tuple[HistoryRef, ...]:
        return tuple(e.ref() for e in self._entries)
