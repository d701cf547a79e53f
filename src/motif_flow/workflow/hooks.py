"""Lifecycle hook execution.

Hooks (`transition_in`, `transition_out`) and effects may return nothing, a
cleanup callable, or an awaitable resolving to a cleanup. Awaitables are
wrapped in a `HookTask` stamped with the generation of the activation that
dispatched them; when they resolve, the stamp decides whether the cleanup is
kept for later or run on the spot because its activation is already gone.

Every failure is wrapped in `HookError`, logged and swallowed.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from motif_flow.errors import HookError
from motif_flow.step import Cleanup

logger = logging.getLogger(__name__)


class BucketState(str, Enum):
    OPEN = "open"
    FLUSHED = "flushed"
    DISCARDED = "discarded"


class CleanupBucket:
    """Exit cleanups captured when a node is left, replayed on `go_back`.

    Once flushed, late arrivals run immediately. Once discarded (the node can
    never be returned to), late arrivals are dropped.
    """

    def __init__(self, runner: HookRunner, node_id: str) -> None:
        self._runner = runner
        self.node_id = node_id
        self.state = BucketState.OPEN
        self._cleanups: list[Cleanup] = []

    def __len__(self) -> int:
        return len(self._cleanups)

    @property
    def is_open(self) -> bool:
        return self.state is BucketState.OPEN

    def add(self, cleanup: Cleanup) -> None:
        if self.state is BucketState.OPEN:
            self._cleanups.append(cleanup)
        elif self.state is BucketState.FLUSHED:
            self._runner.run(cleanup, node_id=self.node_id, phase="transition_out_cleanup")
        else:
            logger.debug(f"Dropping late exit cleanup for {self.node_id}")

    def flush(self) -> None:
        cleanups, self._cleanups = self._cleanups, []
        self.state = BucketState.FLUSHED
        self._runner.run_all(cleanups, node_id=self.node_id, phase="transition_out_cleanup")

    def discard(self) -> None:
        self._cleanups = []
        self.state = BucketState.DISCARDED


@dataclass
class HookTask:
    """A hook whose cleanup may arrive later than the hook call itself."""

    node_id: str
    phase: str
    generation: int
    is_current: Callable[[int], bool]
    keep: Callable[[Cleanup], None]
    release: Callable[[Cleanup], None]

    def settle(self, cleanup: Any) -> None:
        if not callable(cleanup):
            return
        if self.is_current(self.generation):
            self.keep(cleanup)
        else:
            self.release(cleanup)


class HookRunner:
    """Calls user hooks with error isolation and tracks pending async work."""

    def __init__(self, error_level: int = logging.ERROR) -> None:
        self.error_level = error_level
        self._pending: set[asyncio.Future[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def report(self, exc: BaseException, *, node_id: str, phase: str) -> None:
        err = HookError(node_id=node_id, phase=phase)
        err.__cause__ = exc
        logger.log(
            self.error_level,
            str(err),
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"node_id": node_id, "phase": phase},
        )

    def run(self, fn: Callable[[], Any], *, node_id: str, phase: str) -> Any:
        """Call `fn`; a failure is reported and turned into `None`."""

        try:
            return fn()
        except Exception as e:
            self.report(e, node_id=node_id, phase=phase)
            return None

    def run_all(self, fns: Iterable[Callable[[], Any]], *, node_id: str, phase: str) -> None:
        for fn in fns:
            self.run(fn, node_id=node_id, phase=phase)

    def dispatch(self, hook: Callable[[], Any], task: HookTask) -> None:
        """Run a hook and route its (possibly deferred) cleanup through `task`."""

        result = self.run(hook, node_id=task.node_id, phase=task.phase)
        if inspect.isawaitable(result):
            self._await(result, task)
        else:
            task.settle(result)

    def _await(self, awaitable: Any, task: HookTask) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            # Nothing can resolve the awaitable without a running loop.
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self.report(e, node_id=task.node_id, phase=task.phase)
            return

        future = asyncio.ensure_future(awaitable, loop=loop)

        self._pending.add(future)

        def done(fut: asyncio.Future[Any]) -> None:
            self._pending.discard(fut)
            if fut.cancelled():
                logger.debug(f"{task.phase} hook of {task.node_id} was cancelled")
                return
            exc = fut.exception()
            if exc is not None:
                self.report(exc, node_id=task.node_id, phase=task.phase)
                return
            task.settle(fut.result())

        future.add_done_callback(done)
