#!/usr/bin/env python3
"""Onboarding flow example.

email -> verify (countdown, no history) -> profile -> plan -> success

Run it directly to walk through the flow, or inspect the graph with:

    motif-flow describe basic_usage:build_workflow
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel, ConfigDict

from motif_flow import BuildArgs, FlowSettings, Workflow, step
from motif_flow.logging import configure_logging
from motif_flow.middleware import logging_middleware


class Email(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: str


class Verified(Email):
    is_verified: bool


class Profile(Email):
    name: str
    role: str


class Plan(Email):
    plan: str


class Summary(BaseModel):
    email: str
    is_verified: bool | None = None
    name: str | None = None
    role: str | None = None
    plan: str | None = None


@step("input", output_schema=Email)
def InputStep(args: BuildArgs) -> dict[str, object]:
    return {"submit": lambda email: args.next({"email": email})}


def verify_store(set_state, get_state):  # type: ignore[no-untyped-def]
    return {
        "is_active": False,
        "time_left": 3,
        "start": lambda: set_state({"is_active": True}),
        "tick": lambda: set_state(lambda s: {"time_left": max(0, s["time_left"] - 1)}),
    }


@step(
    "verify",
    input_schema=Email,
    output_schema=Verified,
    store_factory=verify_store,
    no_history=True,
)
def VerifyStep(args: BuildArgs) -> dict[str, object]:
    store = args.store
    assert store is not None

    def countdown():  # type: ignore[no-untyped-def]
        if not store["is_active"]:
            return None

        async def run() -> None:
            while True:
                await asyncio.sleep(0.01)
                store["tick"]()

        task = asyncio.get_running_loop().create_task(run())
        return task.cancel

    args.effect(countdown, [store["is_active"]])

    def finish_when_done() -> None:
        if store["is_active"] and store["time_left"] == 0:
            args.next({**args.input.model_dump(), "is_verified": True})

    args.effect(finish_when_done, [store["time_left"], store["is_active"]])

    return {"time_left": store["time_left"], "start": store["start"]}


@step("profile", input_schema=Email, output_schema=Profile)
def ProfileStep(args: BuildArgs) -> dict[str, object]:
    return {
        "submit_profile": lambda name, role: args.next(
            {**args.input.model_dump(), "name": name, "role": role}
        )
    }


@step("plan", input_schema=Email, output_schema=Plan)
def PlanStep(args: BuildArgs) -> dict[str, object]:
    return {"select_plan": lambda plan: args.next({**args.input.model_dump(), "plan": plan})}


@step("success", input_schema=Summary)
def SuccessStep(args: BuildArgs) -> dict[str, object]:
    return {"data": args.input, "done": lambda: args.next(args.input)}


def build_workflow() -> Workflow:
    wf = Workflow([InputStep, VerifyStep, ProfileStep, PlanStep, SuccessStep])
    nodes = [InputStep(), VerifyStep(), ProfileStep(), PlanStep(), SuccessStep()]
    wf.register(nodes)
    for a, b in zip(nodes, nodes[1:], strict=False):
        wf.connect(a, b)
    return wf


async def main() -> None:
    settings = FlowSettings()
    configure_logging(settings)
    wf = logging_middleware(level=logging.INFO)(build_workflow())

    done = asyncio.get_running_loop().create_future()
    wf.on_finish(done.set_result)

    wf.start(wf.internal.nodes["input:input"])
    wf.get_current_step().state.submit("ada@example.com")
    wf.get_current_step().state.start()
    while wf.get_current_step().kind == "verify":
        await asyncio.sleep(0.01)

    wf.get_current_step().state.submit_profile("Ada", "Engineer")
    wf.get_current_step().state.select_plan("Pro")
    print(wf.get_current_step().state.data)
    wf.get_current_step().state.done()
    print(await done)


if __name__ == "__main__":
    asyncio.run(main())
