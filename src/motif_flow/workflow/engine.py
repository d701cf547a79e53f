"""The transition engine.

A `Workflow` owns one graph, one history stack and, while running, one
`WorkflowContext`. Exactly one node is current at a time. Every node visit
goes through the same sequence:

    transition_in:  build body (collect hooks/effects) -> transition_in hooks
    ready:          effects -> step-change notification -> (rebuilds)*
    transition_out: transition_out hooks -> effect cleanups -> transition_in cleanups

All of it runs synchronously on the caller's turn. The only deferred work is
the resolution of awaitable hooks and store-triggered rebuilds, which go
through the running asyncio loop when there is one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from motif_flow.config import FlowSettings
from motif_flow.edge import Edge
from motif_flow.errors import (
    InvalidTransitionStateError,
    StaleStepError,
    TransitionBlockedError,
    UnidirectionalBackError,
    WorkflowNotRunningError,
    WorkflowPausedError,
)
from motif_flow.step import Cleanup, Hook, StepAPI, StepCreator, StepInstance
from motif_flow.workflow.effects import EffectScheduler, EffectSlot
from motif_flow.workflow.events import Broadcaster, FinishNotifier
from motif_flow.workflow.graph import WorkflowGraph
from motif_flow.workflow.history import HistoryEntry, HistoryStack
from motif_flow.workflow.hooks import CleanupBucket, HookRunner, HookTask
from motif_flow.workflow.state import (
    CurrentStep,
    TransitionStatus,
    WorkflowContext,
    WorkflowSnapshot,
)

logger = logging.getLogger(__name__)

StepChangeHandler = Callable[[CurrentStep | None, bool], Any]
FinishHandler = Callable[[Any], Any]

_EMPTY_API = StepAPI({})


class Activation:
    """One visit to a node: its hooks, effects and cleanups."""

    def __init__(self, node: StepInstance, input: Any, generation: int, runner: HookRunner) -> None:
        self.node = node
        self.input = input
        self.generation = generation
        self.effects = EffectScheduler(runner, node.id)
        self.api: StepAPI | None = None
        self.in_hooks: list[Hook] = []
        self.out_hooks: list[Hook] = []
        self.in_cleanups: list[Cleanup] = []
        self.unsubscribe_store: Callable[[], None] | None = None
        self._collecting: list[Hook] | None = None
        self._first_build = False

    def begin_collect(self, first: bool) -> None:
        self._collecting = []
        self._first_build = first

    def abort_collect(self) -> None:
        self._collecting = None

    def end_collect(self) -> None:
        if self._collecting is not None:
            self.out_hooks = self._collecting
        self._collecting = None

    def add_in_hook(self, hook: Hook) -> None:
        if self._collecting is None:
            raise InvalidTransitionStateError(
                f"transition_in() of {self.node.id!r} called outside of its step body"
            )
        # Only the first build of a visit registers transition_in hooks.
        if self._first_build:
            self.in_hooks.append(hook)

    def add_out_hook(self, hook: Hook) -> None:
        if self._collecting is None:
            raise InvalidTransitionStateError(
                f"transition_out() of {self.node.id!r} called outside of its step body"
            )
        self._collecting.append(hook)


class Workflow:
    """A graph of step instances plus the machinery that runs it.

    Example:
        wf = Workflow([StepA, StepB])
        a, b = StepA(), StepB()
        wf.register([a, b]).connect(a, b)
        wf.on_finish(print)
        wf.start(a)
        wf.get_current_step().state.submit(1)
    """

    def __init__(
        self, creators: Iterable[StepCreator], *, settings: FlowSettings | None = None
    ) -> None:
        self.settings = settings or FlowSettings()
        self.graph = WorkflowGraph(creators)
        self.history = HistoryStack()
        self._runner = HookRunner(error_level=self.settings.hook_error_levelno)
        self._step_change: Broadcaster[[CurrentStep | None, bool]] = Broadcaster("step_change")
        self._finish = FinishNotifier()
        self._context: WorkflowContext | None = None
        self._activation: Activation | None = None
        self._generation = 0
        self._run_id = 0
        self._busy = 0
        self.internal = WorkflowInternals(self)

    # -- graph ------------------------------------------------------------

    def register(self, instances: StepInstance | Iterable[StepInstance]) -> Workflow:
        self.graph.register(instances)
        return self

    def connect(
        self,
        from_node: StepInstance | Edge,
        to_node: StepInstance | None = None,
        unidirectional: bool = False,
    ) -> Workflow:
        self.graph.connect(from_node, to_node, unidirectional)
        return self

    def describe(self) -> dict[str, Any]:
        return self.graph.describe()

    # -- run control ------------------------------------------------------

    def start(self, node: StepInstance, input: Any = None) -> Workflow:
        """Start a run at `node`. A run already in progress is stopped first."""

        node = self.graph.require(node)
        validated = node.definition.validate_input(input)
        if self._context is not None:
            self.stop()

        self._run_id += 1
        self._context = WorkflowContext(current_node_id=node.id, current_input=validated)
        logger.info(
            f"Workflow run {self._run_id} started at {node.id}",
            extra={"run_id": self._run_id, "node_id": node.id},
        )
        self._enter(node, validated, back_blocked=False, back_cleanups=None)
        return self

    def stop(self) -> None:
        ctx = self._context
        if ctx is None:
            return
        if ctx.status is not TransitionStatus.TRANSITION_OUT:
            self._exit_current().discard()
            if self._context is not ctx:
                return
        node_id = ctx.current_node_id
        self.history.clear()
        self._teardown()
        logger.info(
            f"Workflow run {self._run_id} stopped at {node_id}",
            extra={"run_id": self._run_id, "node_id": node_id},
        )
        self._emit_step_change()

    def pause(self) -> None:
        ctx = self._context
        if ctx is None or ctx.paused:
            return
        ctx.paused = True
        logger.info(f"Workflow paused at {ctx.current_node_id}")

    def resume(self) -> None:
        ctx = self._context
        if ctx is None or not ctx.paused:
            return
        ctx.paused = False
        logger.info(f"Workflow resumed at {ctx.current_node_id}")
        self._drain()

    def go_back(self) -> None:
        """Return to the previous node with its recorded input."""

        ctx = self._require_ready("go_back")
        if ctx.back_blocked:
            raise UnidirectionalBackError(node_id=ctx.current_node_id)
        entry = self.history.peek()
        node = self.graph.require(entry.node_id)

        with self._operation():
            self._exit_current().discard()
            if self._context is not ctx:
                return
            self.history.pop()
            logger.debug(f"Going back from {ctx.current_node_id} to {node.id}")
            self._enter(
                node, entry.input, back_blocked=entry.back_blocked, back_cleanups=entry.exit_cleanups
            )

    # -- observation ------------------------------------------------------

    def is_workflow_running(self) -> bool:
        return self._context is not None

    def can_go_back(self) -> bool:
        ctx = self._context
        return ctx is not None and not ctx.back_blocked and bool(self.history)

    def get_current_step(self) -> CurrentStep:
        ctx, act = self._context, self._activation
        if ctx is None or act is None:
            raise WorkflowNotRunningError("The workflow is not running")
        node = act.node
        return CurrentStep(
            status=ctx.status,
            kind=node.kind,
            name=node.name,
            input=ctx.current_input,
            state=act.api or _EMPTY_API,
            instance=node,
            can_go_back=self.can_go_back(),
        )

    def subscribe_step_change(self, handler: StepChangeHandler) -> Callable[[], None]:
        """`handler(current_step_or_None, is_running)` on every status change and rebuild."""

        return self._step_change.subscribe(handler)

    def subscribe_workflow_finish(self, handler: FinishHandler) -> Callable[[], None]:
        """`handler(output)` once per completed run."""

        return self._finish.subscribe(handler)

    on_finish = subscribe_workflow_finish

    # -- transitions ------------------------------------------------------

    def _next_from(self, act: Activation, output: Any = None) -> None:
        ctx = self._context
        if ctx is None or self._activation is not act or ctx.generation != act.generation:
            raise StaleStepError(node_id=act.node.id)
        ctx = self._require_ready("next")

        node = act.node
        output = node.definition.validate_output(output)
        edges = self.graph.outgoing(node.id)
        if not edges:
            self._finish_run(output)
            return

        selected, next_input = self._select_edge(node.id, edges, output)
        destination = self.graph.require(selected.to_id)
        next_input = destination.definition.validate_input(next_input)

        with self._operation():
            bucket = self._exit_current()
            if self._context is not ctx:
                bucket.discard()
                return
            if node.no_history or selected.unidirectional:
                bucket.discard()
            else:
                self.history.push(
                    HistoryEntry(
                        node_id=node.id,
                        input=act.input,
                        exit_cleanups=bucket,
                        back_blocked=ctx.back_blocked,
                    )
                )
            logger.debug(f"Transition {selected.id} ({selected.kind.value})")
            self._enter(
                destination, next_input, back_blocked=selected.unidirectional, back_cleanups=None
            )

    def _select_edge(self, node_id: str, edges: list[Edge], output: Any) -> tuple[Edge, Any]:
        failures: list[tuple[str, BaseException]] = []
        for candidate in edges:
            decision = candidate.evaluate(output)
            if decision.accepted:
                return candidate, decision.next_input
            if decision.error is not None:
                failures.append((candidate.id, decision.error))
        raise TransitionBlockedError(node_id=node_id, failures=failures)

    def _finish_run(self, output: Any) -> None:
        ctx = self._context
        assert ctx is not None
        node_id = ctx.current_node_id
        with self._operation():
            self._exit_current().discard()
            if self._context is not ctx:
                return
            run_id = self._run_id
            self.history.clear()
            self._teardown()
            logger.info(
                f"Workflow run {run_id} finished at {node_id}",
                extra={"run_id": run_id, "node_id": node_id},
            )
            self._finish.announce(run_id, output)
            self._emit_step_change()

    def _enter(
        self,
        node: StepInstance,
        input: Any,
        *,
        back_blocked: bool,
        back_cleanups: CleanupBucket | None,
    ) -> None:
        ctx = self._context
        assert ctx is not None
        self._generation += 1
        gen = self._generation
        ctx.current_node_id = node.id
        ctx.current_input = input
        ctx.generation = gen
        ctx.back_blocked = back_blocked
        ctx.rebuild_pending = False
        ctx.move_to(TransitionStatus.TRANSITION_IN)

        act = Activation(node, input, gen, self._runner)
        self._activation = act
        self._emit_step_change()

        with self._operation():
            if back_cleanups is not None:
                back_cleanups.flush()

            try:
                act.api, due = self._build(act, first=True)
            except Exception:
                logger.exception(f"Step {node.id} failed to build; stopping the workflow")
                if self._context is ctx:
                    self.stop()
                raise

            if node.store is not None:
                act.unsubscribe_store = node.store.subscribe(
                    lambda _state, _previous: self._on_store_change(gen)
                )

            for hook in act.in_hooks:
                if not self._is_current(gen):
                    return
                self._runner.dispatch(
                    hook,
                    HookTask(
                        node_id=node.id,
                        phase="transition_in",
                        generation=gen,
                        is_current=self._is_current,
                        keep=act.in_cleanups.append,
                        release=lambda cleanup: self._runner.run(
                            cleanup, node_id=node.id, phase="transition_in_cleanup"
                        ),
                    ),
                )
            if not self._is_current(gen):
                return
            ctx.move_to(TransitionStatus.READY)
            self._settle_build(act, due)

    def _build(self, act: Activation, *, first: bool) -> tuple[StepAPI, list[EffectSlot]]:
        node = act.node
        act.begin_collect(first)
        act.effects.begin_build()
        args = node.bind(
            act.input,
            next=lambda output=None: self._next_from(act, output),
            effect=act.effects.register,
            transition_in=act.add_in_hook,
            transition_out=act.add_out_hook,
        )
        try:
            api = node.build(args)
        except Exception:
            act.effects.abort_build()
            act.abort_collect()
            raise
        act.end_collect()
        return api, act.effects.end_build()

    def _settle_build(self, act: Activation, due: list[EffectSlot]) -> None:
        gen = act.generation
        act.effects.run(due, still_active=lambda: self._is_current(gen))
        if self._is_current(gen):
            self._emit_step_change()

    def _exit_current(self) -> CleanupBucket:
        """Leave the current node: transition_out hooks, effect cleanups, transition_in cleanups.

        Returns the bucket holding the transition_out cleanups, for the caller
        to push onto history or discard.
        """

        ctx, act = self._context, self._activation
        assert ctx is not None and act is not None
        node_id = act.node.id
        self._generation += 1
        ctx.generation = self._generation
        ctx.move_to(TransitionStatus.TRANSITION_OUT)
        self._emit_step_change()

        if act.unsubscribe_store is not None:
            act.unsubscribe_store()
            act.unsubscribe_store = None

        bucket = CleanupBucket(self._runner, node_id)
        for hook in act.out_hooks:
            self._runner.dispatch(
                hook,
                HookTask(
                    node_id=node_id,
                    phase="transition_out",
                    generation=ctx.generation,
                    is_current=lambda _gen: bucket.is_open,
                    keep=bucket.add,
                    release=bucket.add,
                ),
            )
        act.effects.dispose()
        in_cleanups, act.in_cleanups = act.in_cleanups, []
        self._runner.run_all(in_cleanups, node_id=node_id, phase="transition_in_cleanup")
        return bucket

    def _teardown(self) -> None:
        ctx = self._context
        assert ctx is not None
        ctx.move_to(TransitionStatus.NOT_STARTED)
        self._context = None
        self._activation = None

    # -- rebuilds ---------------------------------------------------------

    def _on_store_change(self, gen: int) -> None:
        ctx = self._context
        if ctx is None or not self._is_current(gen) or ctx.rebuild_pending:
            return
        ctx.rebuild_pending = True
        self._drain()

    def _drain(self) -> None:
        ctx = self._context
        if self._busy or ctx is None or ctx.paused or not ctx.rebuild_pending:
            return
        if ctx.status is not TransitionStatus.READY:
            return
        self._schedule(self._flush_rebuild)

    def _schedule(self, callback: Callable[[], None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback()
            return
        loop.call_soon(callback)

    def _flush_rebuild(self) -> None:
        ctx, act = self._context, self._activation
        if ctx is None or act is None or ctx.paused or not ctx.rebuild_pending:
            return
        if self._busy or ctx.status is not TransitionStatus.READY:
            return
        ctx.rebuild_pending = False

        with self._operation():
            try:
                api, due = self._build(act, first=False)
            except Exception as e:
                self._runner.report(e, node_id=act.node.id, phase="rebuild")
                return
            act.api = api
            self._settle_build(act, due)

    # -- helpers ----------------------------------------------------------

    @contextmanager
    def _operation(self) -> Iterator[None]:
        self._busy += 1
        try:
            yield
        finally:
            self._busy -= 1
        if not self._busy:
            self._drain()

    def _is_current(self, gen: int) -> bool:
        ctx = self._context
        return ctx is not None and ctx.generation == gen

    def _require_ready(self, operation: str) -> WorkflowContext:
        ctx = self._context
        if ctx is None:
            raise WorkflowNotRunningError(f"{operation}() needs a running workflow")
        if ctx.paused:
            raise WorkflowPausedError(f"{operation}() is not allowed while the workflow is paused")
        if ctx.status is not TransitionStatus.READY:
            raise InvalidTransitionStateError(
                f"{operation}() is not allowed while {ctx.current_node_id} is {ctx.status.value}"
            )
        return ctx

    def _emit_step_change(self) -> None:
        running = self._context is not None
        current = self.get_current_step() if running and self._activation is not None else None
        if self.settings.trace_transitions:
            if current is None:
                logger.debug("Workflow idle")
            else:
                logger.debug(
                    f"{current.node_id} is {current.status.value}",
                    extra={"node_id": current.node_id, "status": current.status.value},
                )
        self._step_change.emit(current, running)

    def __repr__(self) -> str:
        ctx = self._context
        where = f"{ctx.current_node_id} ({ctx.status.value})" if ctx else "idle"
        return f"Workflow({len(self.graph.nodes)} nodes, {where})"


class WorkflowInternals:
    """Privileged surface for trusted collaborators.

    Snapshot/restore tooling, runtime graph mutation and UI adapters reach the
    live node map, edge list and history through here, and can drive
    transitions directly.
    """

    def __init__(self, workflow: Workflow) -> None:
        self._wf = workflow

    @property
    def nodes(self) -> dict[str, StepInstance]:
        return self._wf.graph.nodes

    @property
    def edges(self) -> list[Edge]:
        return self._wf.graph.edges

    @property
    def history(self) -> HistoryStack:
        return self._wf.history

    @property
    def inventory(self) -> dict[str, StepCreator]:
        return self._wf.graph.inventory

    @property
    def pending_hooks(self) -> int:
        return self._wf._runner.pending

    def get_context(self) -> WorkflowContext | None:
        return self._wf._context

    def get_current_node(self) -> StepInstance:
        act = self._wf._activation
        if act is None:
            raise WorkflowNotRunningError("The workflow is not running")
        return act.node

    def is_workflow_running(self) -> bool:
        return self._wf.is_workflow_running()

    def run_exit_sequence(self) -> CleanupBucket:
        """Leave the current node without entering another one.

        The workflow stays in `transition_out` until `transition_into` is called.
        """

        if self._wf._context is None:
            raise WorkflowNotRunningError("The workflow is not running")
        return self._wf._exit_current()

    def transition_into(
        self,
        node: StepInstance | str,
        input: Any,
        is_back: bool = False,
        back_cleanups: Iterable[Cleanup] = (),
    ) -> None:
        """Enter `node` directly, bypassing edge selection and input validation.

        The current node (if any) is left first and its exit cleanups are
        dropped. With `is_back`, `back_cleanups` are replayed on entry.
        """

        wf = self._wf
        target = wf.graph.require(node)
        ctx = wf._context
        if ctx is None:
            wf._run_id += 1
            ctx = wf._context = WorkflowContext(current_node_id=target.id, current_input=input)
        elif ctx.status is not TransitionStatus.TRANSITION_OUT:
            wf._exit_current().discard()
            if wf._context is not ctx:
                return

        bucket = None
        if is_back:
            bucket = CleanupBucket(wf._runner, target.id)
            for cleanup in back_cleanups:
                bucket.add(cleanup)
        wf._enter(target, input, back_blocked=False, back_cleanups=bucket)

    def stop(self) -> None:
        self._wf.stop()

    def snapshot(self) -> WorkflowSnapshot:
        wf = self._wf
        ctx = wf._context
        stores = {
            node_id: dict(node.store.get_state())
            for node_id, node in wf.graph.nodes.items()
            if node.store is not None
        }
        if ctx is None:
            return WorkflowSnapshot(
                status=TransitionStatus.NOT_STARTED, node_id=None, stores=stores
            )
        return WorkflowSnapshot(
            status=ctx.status,
            node_id=ctx.current_node_id,
            input=ctx.current_input,
            history=wf.history.refs(),
            stores=stores,
        )


def workflow(creators: Iterable[StepCreator], *, settings: FlowSettings | None = None) -> Workflow:
    return Workflow(creators, settings=settings)
