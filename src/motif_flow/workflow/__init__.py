"""Workflow runtime: graph registration, transition engine, history and notifications.

The engine keeps control flow deterministic and inspectable:
- edges are tried in registration order, first acceptance wins
- every node visit follows the same enter -> ready -> exit sequence
- history records where `go_back` may return to, with the exit cleanups to
  replay when it does
"""

from motif_flow.workflow.engine import Workflow, WorkflowInternals, workflow
from motif_flow.workflow.state import CurrentStep, TransitionStatus, WorkflowSnapshot

__all__ = [
    "CurrentStep",
    "TransitionStatus",
    "Workflow",
    "WorkflowInternals",
    "WorkflowSnapshot",
    "workflow",
]
