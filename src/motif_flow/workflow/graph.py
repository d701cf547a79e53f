"""Registration of step instances and edges.

Nodes and edges are kept in flat, id-keyed structures.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from motif_flow.edge import Edge
from motif_flow.edge import edge as default_edge
from motif_flow.errors import (
    DuplicateInstanceError,
    DuplicateKindError,
    UnknownKindError,
    UnregisteredNodeError,
)
from motif_flow.step import StepCreator, StepInstance

logger = logging.getLogger(__name__)


class WorkflowGraph:
    """Step inventory, registered nodes and the edge list of one workflow."""

    def __init__(self, creators: Iterable[StepCreator]) -> None:
        self.inventory: dict[str, StepCreator] = {}
        for creator in creators:
            if creator.kind in self.inventory:
                raise DuplicateKindError(kind=creator.kind)
            self.inventory[creator.kind] = creator
        self.nodes: dict[str, StepInstance] = {}
        self.edges: list[Edge] = []

    def register(self, instances: StepInstance | Iterable[StepInstance]) -> None:
        batch = [instances] if isinstance(instances, StepInstance) else list(instances)

        seen: set[str] = set()
        for node in batch:
            creator = self.inventory.get(node.kind)
            if creator is None or creator.definition is not node.definition:
                raise UnknownKindError(kind=node.kind)
            if node.id in self.nodes or node.id in seen:
                raise DuplicateInstanceError(node_id=node.id)
            seen.add(node.id)

        for node in batch:
            self.nodes[node.id] = node
            logger.debug(f"Registered step {node.id}")

    def connect(
        self,
        from_node: StepInstance | Edge,
        to_node: StepInstance | None = None,
        unidirectional: bool = False,
    ) -> Edge:
        if isinstance(from_node, Edge):
            new_edge = from_node
        else:
            if to_node is None:
                raise TypeError("connect() needs a destination step or an Edge")
            new_edge = default_edge(from_node, to_node, unidirectional)

        for node_id in (new_edge.from_id, new_edge.to_id):
            if node_id not in self.nodes:
                raise UnregisteredNodeError(node_id=node_id)

        self.edges.append(new_edge)
        logger.debug(f"Connected {new_edge.id} ({new_edge.kind.value})")
        return new_edge

    def require(self, node: StepInstance | str) -> StepInstance:
        node_id = node if isinstance(node, str) else node.id
        found = self.nodes.get(node_id)
        if found is None or (isinstance(node, StepInstance) and found is not node):
            raise UnregisteredNodeError(node_id=node_id)
        return found

    def outgoing(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.from_id == node_id]

    def describe(self) -> dict[str, Any]:
        """JSON-serialisable description of steps, nodes and edges."""

        steps = []
        for creator in self.inventory.values():
            definition = creator.definition
            steps.append(
                {
                    "kind": definition.kind,
                    "no_history": definition.no_history,
                    "input_schema": _schema_json(definition.input_schema),
                    "output_schema": _schema_json(definition.output_schema),
                    "config_schema": _schema_json(definition.config_schema),
                    "store": definition.store_factory is not None,
                }
            )
        return {
            "steps": steps,
            "nodes": [
                {"id": n.id, "kind": n.kind, "name": n.name, "terminal": not self.outgoing(n.id)}
                for n in self.nodes.values()
            ],
            "edges": [e.to_json() for e in self.edges],
        }


def _schema_json(schema: Any) -> dict[str, Any] | None:
    if schema is None:
        return None
    return schema.json_schema()
