"""Error taxonomy for the workflow runtime.

Structural and validation errors are raised to the caller and fail fast.
Hook-level failures are wrapped in `HookError`, logged and discarded by the
engine so a misbehaving hook never stalls a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class WorkflowError(Exception):
    """Base class for every error raised by motif-flow."""


class SchemaValidationError(WorkflowError, ValueError):
    """A value failed its declared schema.

    `errors` holds the structured error list reported by the schema (pydantic's
    `ValidationError.errors()` shape when the schema is a pydantic type).
    """

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


@dataclass(eq=False)
class TransitionBlockedError(WorkflowError):
    """No outgoing edge accepted the output; the workflow did not move."""

    node_id: str
    failures: list[tuple[str, BaseException]] = field(default_factory=list)

    def __str__(self) -> str:
        msg = f"No outgoing edge of {self.node_id!r} accepted the output"
        if self.failures:
            failed = ", ".join(edge_id for edge_id, _ in self.failures)
            msg += f" (failed transforms: {failed})"
        return msg


@dataclass(eq=False)
class UnidirectionalBackError(WorkflowError):
    """`go_back` would reverse an edge that only allows forward travel."""

    node_id: str

    def __str__(self) -> str:
        return f"Cannot go back from {self.node_id!r}: it was entered through a unidirectional edge"


class EmptyHistoryError(WorkflowError):
    """`go_back` was called with nothing to go back to."""


@dataclass(eq=False)
class DuplicateKindError(WorkflowError):
    kind: str

    def __str__(self) -> str:
        return f"Step kind {self.kind!r} is declared more than once"


@dataclass(eq=False)
class DuplicateInstanceError(WorkflowError):
    node_id: str

    def __str__(self) -> str:
        return f"Step instance {self.node_id!r} is already registered"


@dataclass(eq=False)
class UnknownKindError(WorkflowError):
    """An instance was registered whose kind is not in the workflow inventory."""

    kind: str

    def __str__(self) -> str:
        return f"Step kind {self.kind!r} is not part of this workflow"


@dataclass(eq=False)
class UnregisteredNodeError(WorkflowError):
    node_id: str

    def __str__(self) -> str:
        return f"Step instance {self.node_id!r} is not registered"


class WorkflowNotRunningError(WorkflowError):
    """The operation requires a running workflow."""


class InvalidTransitionStateError(WorkflowError):
    """The engine was asked to do something its current status does not allow."""


class WorkflowPausedError(WorkflowError):
    """The workflow is paused; transitions are frozen until `resume()`."""


@dataclass(eq=False)
class StaleStepError(WorkflowError):
    """`next` was called from a step API that is no longer the current one."""

    node_id: str

    def __str__(self) -> str:
        return f"Step {self.node_id!r} is no longer active"


@dataclass(eq=False)
class HookError(WorkflowError):
    """Wraps a failure raised by a lifecycle hook, an effect or a cleanup.

    Never propagated; the engine logs it and moves on.
    """

    node_id: str
    phase: str

    def __str__(self) -> str:
        return f"{self.phase} hook of {self.node_id!r} failed: {self.__cause__!r}"
