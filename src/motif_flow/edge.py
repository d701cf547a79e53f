"""Edges between step instances.

Edges reference their endpoints by node id so a graph can be described and
snapshotted without walking object references.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from motif_flow.step import StepInstance

logger = logging.getLogger(__name__)

Guard = Callable[[Any], bool]
Transform = Callable[[Any], Any]


class EdgeKind(str, Enum):
    DEFAULT = "default"
    CONDITIONAL = "conditional"
    TRANSFORM = "transform"


@dataclass(frozen=True, slots=True)
class EdgeDecision:
    """Outcome of offering an output to one edge."""

    accepted: bool
    next_input: Any = None
    error: BaseException | None = None


@dataclass(frozen=True, slots=True)
class Edge:
    """A directed connection `from_id -> to_id`.

    Attributes:
        from_id: Id of the node transitioned out of.
        to_id: Id of the node transitioned into.
        unidirectional: Forward-only; `go_back` may not reverse it.
        kind: default (always accepts), conditional (guard) or transform.
        guard: Predicate over the output, conditional edges only.
        transform: Output -> input mapping, transform edges only. Raising
            means the edge does not accept.
    """

    from_id: str
    to_id: str
    unidirectional: bool = False
    kind: EdgeKind = EdgeKind.DEFAULT
    guard: Guard | None = None
    transform: Transform | None = None

    def __post_init__(self) -> None:
        if self.kind is EdgeKind.CONDITIONAL and self.guard is None:
            raise ValueError("Conditional edges need a guard")
        if self.kind is EdgeKind.TRANSFORM and self.transform is None:
            raise ValueError("Transform edges need a transform")

    @property
    def id(self) -> str:  # noqa: A003 (edge identity)
        return f"{self.from_id}->{self.to_id}"

    def evaluate(self, output: Any) -> EdgeDecision:
        """Offer `output` to this edge.

        A transform that raises only makes the edge decline; the error is kept
        on the decision. A guard that raises fails fast: the exception
        propagates out of `next()` and the workflow stays where it is.
        """

        if self.kind is EdgeKind.DEFAULT:
            return EdgeDecision(accepted=True, next_input=output)

        if self.kind is EdgeKind.CONDITIONAL:
            assert self.guard is not None
            return EdgeDecision(accepted=bool(self.guard(output)), next_input=output)

        assert self.transform is not None
        try:
            return EdgeDecision(accepted=True, next_input=self.transform(output))
        except Exception as e:
            logger.debug(f"Transform on edge {self.id} rejected output: {e!r}")
            return EdgeDecision(accepted=False, error=e)

    def to_json(self) -> dict[str, object]:
        return {
            "from": self.from_id,
            "to": self.to_id,
            "kind": self.kind.value,
            "unidirectional": self.unidirectional,
        }


def _node_id(node: StepInstance | str) -> str:
    return node if isinstance(node, str) else node.id


def edge(
    from_node: StepInstance | str, to_node: StepInstance | str, unidirectional: bool = False
) -> Edge:
    """An edge that always accepts."""

    return Edge(from_id=_node_id(from_node), to_id=_node_id(to_node), unidirectional=unidirectional)


def conditional_edge(
    from_node: StepInstance | str,
    to_node: StepInstance | str,
    guard: Guard,
    unidirectional: bool = False,
) -> Edge:
    """An edge that accepts when `guard(output)` is truthy."""

    return Edge(
        from_id=_node_id(from_node),
        to_id=_node_id(to_node),
        unidirectional=unidirectional,
        kind=EdgeKind.CONDITIONAL,
        guard=guard,
    )


def transform_edge(
    from_node: StepInstance | str,
    to_node: StepInstance | str,
    transform: Transform,
    unidirectional: bool = False,
) -> Edge:
    """An edge that feeds `transform(output)` to the next node, unless it raises."""

    return Edge(
        from_id=_node_id(from_node),
        to_id=_node_id(to_node),
        unidirectional=unidirectional,
        kind=EdgeKind.TRANSFORM,
        transform=transform,
    )
