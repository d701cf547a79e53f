from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Generic, ParamSpec

logger = logging.getLogger(__name__)

P = ParamSpec("P")


class Broadcaster(Generic[P]):
    """Fan-out of notifications to subscribed handlers.

    Handlers are observers: one that raises is logged and the others still
    run.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Callable[P, Any]] = []

    def __len__(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Callable[P, Any]) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, *args: P.args, **kwargs: P.kwargs) -> None:
        for handler in list(self._handlers):
            try:
                handler(*args, **kwargs)
            except Exception:
                logger.exception(f"{self.name} subscriber {handler!r} failed")


class FinishNotifier:
    """Broadcasts the terminal output of a run, exactly once per run.

    Run ids only grow, so remembering the last announced one is enough.
    """

    def __init__(self) -> None:
        self._broadcaster: Broadcaster[[Any]] = Broadcaster("finish")
        self.last_announced = 0

    def subscribe(self, handler: Callable[[Any], Any]) -> Callable[[], None]:
        return self._broadcaster.subscribe(handler)

    def announce(self, run_id: int, output: Any) -> bool:
        if run_id <= self.last_announced:
            return False
        self.last_announced = run_id
        self._broadcaster.emit(output)
        return True
