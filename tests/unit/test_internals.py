"""Unit tests for the privileged workflow surface and snapshots."""

from __future__ import annotations

import json

import pytest

from motif_flow import TransitionStatus, UnregisteredNodeError, Workflow, step


def tally(set_state, get_state):
    return {"visits": 0, "visit": lambda: set_state(lambda s: {"visits": s["visits"] + 1})}


def build():
    log: list[str] = []

    @step("a", store_factory=tally)
    def A(args):
        args.transition_in(lambda: lambda: log.append("a-in-cleanup"))
        return {"go": lambda: args.next({"from": "a"}), "visit": args.store["visit"]}

    @step("b")
    def B(args):
        return {"input": args.input}

    wf = Workflow([A, B])
    a, b = A(), B()
    wf.register([a, b]).connect(a, b)
    return wf, a, b, log


def test_internals_expose_graph_and_context() -> None:
    wf, a, b, _ = build()

    assert set(wf.internal.nodes) == {"a:a", "b:b"}
    assert [e.id for e in wf.internal.edges] == ["a:a->b:b"]
    assert set(wf.internal.inventory) == {"a", "b"}
    assert wf.internal.get_context() is None
    assert wf.internal.is_workflow_running() is False

    wf.start(a)
    ctx = wf.internal.get_context()
    assert ctx.current_node_id == "a:a"
    assert ctx.status is TransitionStatus.READY
    assert wf.internal.get_current_node() is a


def test_transition_into_bypasses_edges() -> None:
    wf, a, b, log = build()
    wf.start(a)

    wf.internal.transition_into("b:b", {"forced": True})

    assert log == ["a-in-cleanup"]
    assert wf.get_current_step().kind == "b"
    assert wf.get_current_step().input == {"forced": True}
    assert len(wf.internal.history) == 0


def test_transition_into_starts_an_idle_workflow_and_replays_cleanups() -> None:
    wf, a, b, _ = build()
    replayed: list[str] = []

    wf.internal.transition_into(a, None, is_back=True, back_cleanups=[lambda: replayed.append("x")])

    assert replayed == ["x"]
    assert wf.is_workflow_running() is True
    assert wf.get_current_step().kind == "a"


def test_run_exit_sequence_then_transition_into() -> None:
    wf, a, b, log = build()
    wf.start(a)

    bucket = wf.internal.run_exit_sequence()
    assert wf.internal.get_context().status is TransitionStatus.TRANSITION_OUT
    assert log == ["a-in-cleanup"]
    assert bucket.node_id == "a:a"

    wf.internal.transition_into(b, "manual")
    assert wf.get_current_step().input == "manual"
    assert log == ["a-in-cleanup"]


def test_transition_into_unknown_node_fails() -> None:
    wf, *_ = build()
    with pytest.raises(UnregisteredNodeError):
        wf.internal.transition_into("missing:node", None)


def test_snapshot_is_json_serialisable() -> None:
    wf, a, b, _ = build()
    assert wf.internal.snapshot().to_json()["status"] == "not_started"

    wf.start(a)
    wf.get_current_step().state.visit()
    wf.get_current_step().state.go()

    snap = wf.internal.snapshot()
    assert snap.status is TransitionStatus.READY
    assert snap.node_id == "b:b"
    assert [ref.node_id for ref in snap.history] == ["a:a"]

    data = json.loads(snap.dumps())
    assert data["input"] == {"from": "a"}
    assert data["history"] == [{"node_id": "a:a", "input": None}]
    assert data["stores"] == {"a:a": {"visits": 1}}
