"""motif-flow.

A workflow/state-machine runtime: steps with declared input/output contracts
and lifecycle hooks, connected by typed edges, driven by a deterministic
transition engine with history-based back navigation.
"""

__version__ = "0.1.0"

from motif_flow.config import FlowSettings
from motif_flow.edge import Edge, EdgeKind, conditional_edge, edge, transform_edge
from motif_flow.errors import (
    DuplicateInstanceError,
    DuplicateKindError,
    EmptyHistoryError,
    HookError,
    InvalidTransitionStateError,
    SchemaValidationError,
    StaleStepError,
    TransitionBlockedError,
    UnidirectionalBackError,
    UnknownKindError,
    UnregisteredNodeError,
    WorkflowError,
    WorkflowNotRunningError,
    WorkflowPausedError,
)
from motif_flow.step import BuildArgs, StepAPI, StepCreator, StepInstance, step
from motif_flow.store import Store, create_store
from motif_flow.workflow import CurrentStep, TransitionStatus, Workflow, workflow

__all__ = [
    "__version__",
    "BuildArgs",
    "CurrentStep",
    "DuplicateInstanceError",
    "DuplicateKindError",
    "Edge",
    "EdgeKind",
    "EmptyHistoryError",
    "FlowSettings",
    "HookError",
    "InvalidTransitionStateError",
    "SchemaValidationError",
    "StaleStepError",
    "StepAPI",
    "StepCreator",
    "StepInstance",
    "Store",
    "TransitionBlockedError",
    "TransitionStatus",
    "UnidirectionalBackError",
    "UnknownKindError",
    "UnregisteredNodeError",
    "Workflow",
    "WorkflowError",
    "WorkflowNotRunningError",
    "WorkflowPausedError",
    "conditional_edge",
    "create_store",
    "edge",
    "step",
    "transform_edge",
    "workflow",
]
