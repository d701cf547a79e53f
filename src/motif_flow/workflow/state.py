from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from motif_flow.errors import InvalidTransitionStateError

if TYPE_CHECKING:
    from motif_flow.step import StepAPI, StepInstance


class TransitionStatus(str, Enum):
    NOT_STARTED = "not_started"
    TRANSITION_IN = "transition_in"
    READY = "ready"
    TRANSITION_OUT = "transition_out"


ALLOWED_TRANSITIONS: dict[TransitionStatus, set[TransitionStatus]] = {
    TransitionStatus.NOT_STARTED: {TransitionStatus.TRANSITION_IN},
    TransitionStatus.TRANSITION_IN: {TransitionStatus.READY, TransitionStatus.TRANSITION_OUT},
    TransitionStatus.READY: {TransitionStatus.TRANSITION_OUT},
    TransitionStatus.TRANSITION_OUT: {TransitionStatus.TRANSITION_IN, TransitionStatus.NOT_STARTED},
}


def check_transition(current: TransitionStatus, to: TransitionStatus) -> TransitionStatus:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise InvalidTransitionStateError(f"Illegal status change: {current.value} -> {to.value}")
    return to


@dataclass
class WorkflowContext:
    """Run state owned by one workflow; exists from `start` to finish/stop.

    `generation` increases every time a node is entered or left. Work that
    was dispatched under an older generation belongs to an activation that is
    already gone.
    """

    current_node_id: str
    current_input: Any = None
    status: TransitionStatus = TransitionStatus.NOT_STARTED
    generation: int = 0
    back_blocked: bool = False
    paused: bool = False
    rebuild_pending: bool = False

    def move_to(self, to: TransitionStatus) -> None:
        self.status = check_transition(self.status, to)


@dataclass(frozen=True, slots=True)
class CurrentStep:
    """What `Workflow.get_current_step()` reports about the active node."""

    status: TransitionStatus
    kind: str
    name: str
    input: Any
    state: StepAPI
    instance: StepInstance
    can_go_back: bool

    @property
    def node_id(self) -> str:
        return self.instance.id


@dataclass(frozen=True, slots=True)
class HistoryRef:
    node_id: str
    input: Any

    def to_json(self) -> dict[str, object]:
        return {"node_id": self.node_id, "input": _jsonable(self.input)}


@dataclass(frozen=True, slots=True)
class WorkflowSnapshot:
    """Id-based picture of a running workflow, safe to serialise."""

    status: TransitionStatus
    node_id: str | None
    input: Any = None
    history: tuple[HistoryRef, ...] = field(default_factory=tuple)
    stores: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_json(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "node_id": self.node_id,
            "input": _jsonable(self.input),
            "history": [h.to_json() for h in self.history],
            "stores": {
                node_id: {k: _jsonable(v) for k, v in state.items() if not callable(v)}
                for node_id, state in self.stores.items()
            },
        }

    def dumps(self) -> str:
        return json.dumps(self.to_json(), indent=2, ensure_ascii=False)


def _jsonable(value: Any) -> Any:
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        return dump(mode="json")
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value
