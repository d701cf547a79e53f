"""Workflow middleware.

A middleware takes a workflow and returns a workflow, typically the same
object after subscribing to it, or a wrapper that adds methods.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import reduce
from typing import Any

from motif_flow.workflow import CurrentStep, Workflow

Middleware = Callable[[Workflow], Workflow]


def compose_middleware(*middlewares: Middleware) -> Middleware:
    """Combine middlewares, applied left to right (the first one wraps innermost)."""

    def composed(wf: Workflow) -> Workflow:
        return reduce(lambda acc, middleware: middleware(acc), middlewares, wf)

    return composed


def apply_middleware(wf: Workflow, middleware: Middleware) -> Workflow:
    return middleware(wf)


def logging_middleware(
    logger: logging.Logger | None = None, level: int = logging.INFO
) -> Middleware:
    """Log step changes and finished runs of the wrapped workflow."""

    log = logger or logging.getLogger("motif_flow.trace")

    def middleware(wf: Workflow) -> Workflow:
        def on_step_change(current: CurrentStep | None, running: bool) -> None:
            if current is None:
                log.log(level, "Workflow idle", extra={"running": running})
                return
            log.log(
                level,
                f"Step {current.node_id} {current.status.value}",
                extra={
                    "node_id": current.node_id,
                    "status": current.status.value,
                    "can_go_back": current.can_go_back,
                },
            )

        def on_finish(output: Any) -> None:
            log.log(level, f"Workflow finished with {output!r}")

        wf.subscribe_step_change(on_step_change)
        wf.on_finish(on_finish)
        return wf

    return middleware
