"""Test configuration and fixtures."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel

from motif_flow import BuildArgs, FlowSettings, StepCreator, step


class Value(BaseModel):
    value: int


@pytest.fixture
def flow_settings() -> FlowSettings:
    """Provide settings that do not depend on the environment."""
    return FlowSettings(
        log_level="DEBUG",
        json_logs=False,
        hook_error_level="ERROR",
        trace_transitions=True,
    )


@pytest.fixture
def submit_step() -> StepCreator:
    """A step with no input that emits `{"value": n}` from `submit(n)`."""

    def body(args: BuildArgs) -> dict[str, object]:
        return {"submit": lambda value: args.next({"value": value})}

    return step("submit", body, output_schema=Value)


@pytest.fixture
def increment_step() -> StepCreator:
    """A step that finishes with `value + 1` as soon as it is ready."""

    def body(args: BuildArgs) -> dict[str, object]:
        args.effect(lambda: args.next({"value": args.input.value + 1}), [])
        return {}

    return step("increment", body, input_schema=Value, output_schema=Value)


@pytest.fixture
def passthrough_step() -> StepCreator:
    """A step that forwards its input unchanged via `go()`."""

    def body(args: BuildArgs) -> dict[str, object]:
        return {"go": lambda: args.next(args.input), "input": args.input}

    return step("passthrough", body, input_schema=Any)
