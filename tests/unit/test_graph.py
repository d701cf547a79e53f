"""Unit tests for graph registration and description."""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from motif_flow import (
    DuplicateInstanceError,
    DuplicateKindError,
    UnknownKindError,
    UnregisteredNodeError,
    Workflow,
    step,
)


class Value(BaseModel):
    value: int


@step("a", output_schema=Value)
def A(args):
    return {}


@step("b", input_schema=Value, no_history=True)
def B(args):
    return {}


def test_duplicate_kinds_are_rejected() -> None:
    other_a = step("a", lambda args: {})
    with pytest.raises(DuplicateKindError):
        Workflow([A, other_a])


def test_register_rejects_unknown_kinds() -> None:
    wf = Workflow([A])
    with pytest.raises(UnknownKindError):
        wf.register(B())


def test_register_rejects_instances_of_a_different_definition() -> None:
    impostor = step("a", lambda args: {})
    wf = Workflow([A])
    with pytest.raises(UnknownKindError):
        wf.register(impostor())


def test_register_rejects_duplicate_ids_atomically() -> None:
    wf = Workflow([A, B])
    wf.register(A("one"))

    with pytest.raises(DuplicateInstanceError):
        wf.register([B("fresh"), A("one")])
    assert "b:fresh" not in wf.internal.nodes

    with pytest.raises(DuplicateInstanceError):
        wf.register([B("x"), B("x")])


def test_connect_requires_registered_nodes() -> None:
    wf = Workflow([A, B])
    a = A()
    wf.register(a)
    with pytest.raises(UnregisteredNodeError):
        wf.connect(a, B())


def test_start_requires_a_registered_node() -> None:
    wf = Workflow([A])
    with pytest.raises(UnregisteredNodeError):
        wf.start(A())


def test_describe_lists_steps_nodes_and_edges() -> None:
    wf = Workflow([A, B])
    a, b = A(), B()
    wf.register([a, b]).connect(a, b, unidirectional=True)

    described = wf.describe()

    kinds = {s["kind"]: s for s in described["steps"]}
    assert kinds["a"]["output_schema"]["properties"]["value"]["type"] == "integer"
    assert kinds["a"]["input_schema"] is None
    assert kinds["b"]["no_history"] is True
    assert described["nodes"] == [
        {"id": "a:a", "kind": "a", "name": "a", "terminal": False},
        {"id": "b:b", "kind": "b", "name": "b", "terminal": True},
    ]
    assert described["edges"] == [
        {"from": "a:a", "to": "b:b", "kind": "default", "unidirectional": True}
    ]
