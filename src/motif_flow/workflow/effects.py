"""Reactive effects with dependency diffing.

Effects are identified by their registration order within a build, so a
step body must register the same effects in the same order on every build.

- `deps=None`: cleaned up and re-run after every build
- `deps=[]`: run once, after the first build
- `deps=[a, b]`: re-run when any entry changed since the previous build
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from motif_flow.errors import InvalidTransitionStateError
from motif_flow.step import Cleanup, EffectFn
from motif_flow.workflow.hooks import HookRunner, HookTask

logger = logging.getLogger(__name__)

_VALUE_TYPES = (int, float, complex, str, bytes, bool, type(None))


def same_dependency(a: Any, b: Any) -> bool:
    """Shallow comparison: identity, or equality for plain scalar values."""

    if a is b:
        return True
    if type(a) is not type(b) or not isinstance(a, _VALUE_TYPES):
        return False
    if isinstance(a, float) and math.isnan(a) and math.isnan(b):
        return True
    return bool(a == b)


def dependencies_changed(previous: Sequence[Any] | None, current: Sequence[Any] | None) -> bool:
    if previous is None or current is None:
        return True
    if len(previous) != len(current):
        return True
    return not all(same_dependency(a, b) for a, b in zip(previous, current, strict=True))


@dataclass
class EffectSlot:
    fn: EffectFn
    deps: tuple[Any, ...] | None
    cleanup: Cleanup | None = None
    token: int = 0
    disposed: bool = False


class EffectScheduler:
    """Effects of one node activation (one visit to a node)."""

    def __init__(self, runner: HookRunner, node_id: str) -> None:
        self._runner = runner
        self.node_id = node_id
        self._slots: list[EffectSlot] = []
        self._incoming: list[tuple[EffectFn, tuple[Any, ...] | None]] | None = None

    def __len__(self) -> int:
        return len(self._slots)

    def begin_build(self) -> None:
        self._incoming = []

    def register(self, fn: EffectFn, deps: Sequence[Any] | None = None) -> None:
        if self._incoming is None:
            raise InvalidTransitionStateError(
                f"effect() of {self.node_id!r} called outside of its step body"
            )
        self._incoming.append((fn, tuple(deps) if deps is not None else None))

    def abort_build(self) -> None:
        self._incoming = None

    def end_build(self) -> list[EffectSlot]:
        """Diff the effects collected by the build; return the slots due to run."""

        incoming, self._incoming = self._incoming or [], None
        due: list[EffectSlot] = []

        for index, (fn, deps) in enumerate(incoming):
            if index >= len(self._slots):
                slot = EffectSlot(fn=fn, deps=deps)
                self._slots.append(slot)
                due.append(slot)
                continue
            slot = self._slots[index]
            slot.fn = fn
            if dependencies_changed(slot.deps, deps):
                slot.deps = deps
                due.append(slot)

        if len(self._slots) > len(incoming):
            logger.warning(
                f"Step {self.node_id} registered fewer effects than on its previous build"
            )
            for slot in self._slots[len(incoming) :]:
                self._dispose_slot(slot)
            del self._slots[len(incoming) :]

        return due

    def run(self, due: list[EffectSlot], still_active: Callable[[], bool]) -> None:
        """Clean up every due effect, then run them, in registration order."""

        for slot in due:
            self._release(slot)
        for slot in due:
            if not still_active():
                return
            slot.token += 1
            task = HookTask(
                node_id=self.node_id,
                phase="effect",
                generation=slot.token,
                is_current=lambda token, s=slot: not s.disposed and s.token == token,
                keep=lambda cleanup, s=slot: setattr(s, "cleanup", cleanup),
                release=lambda cleanup: self._runner.run(
                    cleanup, node_id=self.node_id, phase="effect_cleanup"
                ),
            )
            self._runner.dispatch(slot.fn, task)

    def dispose(self) -> None:
        """Run every outstanding effect cleanup; the activation is over."""

        for slot in self._slots:
            self._dispose_slot(slot)
        self._incoming = None

    def _dispose_slot(self, slot: EffectSlot) -> None:
        slot.disposed = True
        self._release(slot)

    def _release(self, slot: EffectSlot) -> None:
        cleanup, slot.cleanup = slot.cleanup, None
        if cleanup is not None:
            self._runner.run(cleanup, node_id=self.node_id, phase="effect_cleanup")
