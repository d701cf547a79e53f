"""Observable local state for a step instance.

A store is created once per step instance from the definition's
`store_factory` and outlives any number of visits to that node.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

State = dict[str, Any]
Listener = Callable[[State, State], None]
SetState = Callable[..., None]
GetState = Callable[[], State]
StoreFactory = Callable[[SetState, GetState], State]


class Store:
    """A minimal observable dict store.

    `creator(set_state, get_state)` returns the initial state. Actions that
    live inside the state (plain functions) close over `set_state`/`get_state`
    to update it:

        def counter(set_state, get_state):
            return {
                "count": 0,
                "increment": lambda: set_state(lambda s: {"count": s["count"] + 1}),
            }
    """

    def __init__(self, creator: StoreFactory) -> None:
        self._listeners: list[Listener] = []
        self._state: State = {}
        initial = creator(self.set_state, self.get_state)
        if not isinstance(initial, Mapping):
            raise TypeError(f"store factory must return a mapping, got {type(initial).__name__}")
        self._state = dict(initial)
        self._initial: State = dict(self._state)

    def get_state(self) -> State:
        return self._state

    def get_initial_state(self) -> State:
        return self._initial

    def set_state(
        self,
        partial: Mapping[str, Any] | Callable[[State], Mapping[str, Any]],
        replace: bool = False,
    ) -> None:
        """Merge (or with `replace=True`, swap in) a new state and notify listeners.

        A new dict is produced on every effective change so subscribers can
        compare states by identity.
        """

        update = partial(self._state) if callable(partial) else partial
        if update is None:
            return
        previous = self._state
        if replace:
            new_state = dict(update)
        else:
            if all(k in previous and previous[k] is v for k, v in update.items()):
                return
            new_state = {**previous, **update}
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state, previous)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def __repr__(self) -> str:
        return f"Store({self._state!r})"


def create_store(creator: StoreFactory) -> Store:
    return Store(creator)
