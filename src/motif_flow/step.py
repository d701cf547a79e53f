"""Step definitions, creators and instances.

A step is declared once with `step(...)`, which returns a `StepCreator`.
Calling the creator materialises a named `StepInstance` that can be
registered on a workflow:

    @step("greet", output_schema=Greeting)
    def Greet(args: BuildArgs) -> dict[str, object]:
        return {"submit": lambda name: args.next({"text": f"Hello {name}"})}

    node = Greet("welcome")
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from motif_flow.schema import Schema, as_schema
from motif_flow.store import Store, StoreFactory

Cleanup = Callable[[], Any]
# A hook returns nothing, a cleanup, or an awaitable resolving to a cleanup.
Hook = Callable[[], Any]
EffectFn = Callable[[], Any]


class StepCapability(enum.Flag):
    """What a step's body receives beyond the always-present callbacks."""

    NONE = 0
    INPUT = enum.auto()
    CONFIG = enum.auto()
    STORE = enum.auto()


@dataclass(frozen=True, slots=True)
class BuildArgs:
    """Arguments handed to a step body on every (re)build.

    `next`, `effect`, `transition_in` and `transition_out` are bound to the
    current activation of the node. The remaining fields are filled according
    to the definition's capabilities: `input` (validated) when an input schema
    is declared, `config` when a config schema is declared, `store` (a snapshot
    of the instance store state, its actions included) and `store_api` (the
    store itself) when a store factory is declared.
    """

    name: str
    next: Callable[..., None]
    effect: Callable[..., None]
    transition_in: Callable[[Hook], None]
    transition_out: Callable[[Hook], None]
    input: Any = None
    config: Any = None
    store: Mapping[str, Any] | None = None
    store_api: Store | None = None


BuildFn = Callable[[BuildArgs], Mapping[str, Any]]


class StepAPI(Mapping[str, Any]):
    """The public surface a step body exposes.

    Read-only mapping of names to values or callables, also reachable as
    attributes (`api.submit(1)` or `api["submit"](1)`).
    """

    __slots__ = ("_members",)

    def __init__(self, members: Mapping[str, Any]) -> None:
        object.__setattr__(self, "_members", dict(members))

    def __getitem__(self, key: str) -> Any:
        return self._members[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._members[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("StepAPI is read-only")

    def actions(self) -> dict[str, Callable[..., Any]]:
        """Callable members only, e.g. for tool-calling adapters."""

        return {k: v for k, v in self._members.items() if callable(v)}

    def __repr__(self) -> str:
        return f"StepAPI({sorted(self._members)!r})"


@dataclass(frozen=True, slots=True)
class StepDefinition:
    """Immutable blueprint of a step."""

    kind: str
    body: BuildFn
    input_schema: Schema | None = None
    output_schema: Schema | None = None
    config_schema: Schema | None = None
    api_schema: Any = None
    store_factory: StoreFactory | None = None
    no_history: bool = False
    capabilities: StepCapability = field(init=False)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, str) or not self.kind:
            raise ValueError("Step kind must be a non-empty string")
        caps = StepCapability.NONE
        if self.input_schema is not None:
            caps |= StepCapability.INPUT
        if self.config_schema is not None:
            caps |= StepCapability.CONFIG
        if self.store_factory is not None:
            caps |= StepCapability.STORE
        object.__setattr__(self, "capabilities", caps)

    def validate_input(self, value: Any) -> Any:
        if self.input_schema is None:
            return value
        return self.input_schema.validate(value, label=f"input of step {self.kind!r}")

    def validate_output(self, value: Any) -> Any:
        if self.output_schema is None:
            return value
        return self.output_schema.validate(value, label=f"output of step {self.kind!r}")

    def validate_config(self, value: Any) -> Any:
        if self.config_schema is None:
            return value
        return self.config_schema.validate(value, label=f"config of step {self.kind!r}")


@dataclass(eq=False)
class StepInstance:
    """A named, registrable occurrence of a step definition."""

    definition: StepDefinition
    name: str
    config: Any = None
    store: Store | None = None

    @property
    def id(self) -> str:  # noqa: A003 (node identity)
        return f"{self.definition.kind}:{self.name}"

    @property
    def kind(self) -> str:
        return self.definition.kind

    @property
    def no_history(self) -> bool:
        return self.definition.no_history

    @property
    def api_schema(self) -> Any:
        return self.definition.api_schema

    @property
    def capabilities(self) -> StepCapability:
        return self.definition.capabilities

    def bind(self, input: Any, **callbacks: Callable[..., Any]) -> BuildArgs:
        """Build arguments carrying only what the definition declared."""

        caps = self.capabilities
        store = self.store if StepCapability.STORE in caps else None
        return BuildArgs(
            name=self.name,
            input=input if StepCapability.INPUT in caps else None,
            config=self.config if StepCapability.CONFIG in caps else None,
            store=store.get_state() if store is not None else None,
            store_api=store,
            **callbacks,
        )

    def build(self, args: BuildArgs) -> StepAPI:
        api = self.definition.body(args)
        if api is None:
            return StepAPI({})
        if not isinstance(api, Mapping):
            raise TypeError(
                f"Step {self.id!r} body must return a mapping, got {type(api).__name__}"
            )
        return StepAPI(api)

    def __repr__(self) -> str:
        return f"StepInstance({self.id!r})"


class StepCreator:
    """Callable returned by `step()`; each call yields a fresh `StepInstance`."""

    def __init__(self, definition: StepDefinition) -> None:
        self.definition = definition

    @property
    def kind(self) -> str:
        return self.definition.kind

    @property
    def input_schema(self) -> Schema | None:
        return self.definition.input_schema

    @property
    def output_schema(self) -> Schema | None:
        return self.definition.output_schema

    @property
    def config_schema(self) -> Schema | None:
        return self.definition.config_schema

    @property
    def api_schema(self) -> Any:
        return self.definition.api_schema

    def __call__(self, name: str | None = None, config: Any = None) -> StepInstance:
        if name is None:
            name = self.definition.kind
        if not isinstance(name, str) or not name:
            raise ValueError("Step instance name must be a non-empty string")

        if StepCapability.CONFIG in self.definition.capabilities:
            config = self.definition.validate_config(config)
        elif config is not None:
            raise TypeError(f"Step {self.kind!r} declares no config_schema and takes no config")

        store = None
        if self.definition.store_factory is not None:
            store = Store(self.definition.store_factory)

        return StepInstance(definition=self.definition, name=name, config=config, store=store)

    def __repr__(self) -> str:
        return f"StepCreator({self.kind!r})"


def step(
    kind: str,
    body: BuildFn | None = None,
    *,
    input_schema: Any = None,
    output_schema: Any = None,
    config_schema: Any = None,
    api_schema: Any = None,
    store_factory: StoreFactory | None = None,
    no_history: bool = False,
) -> Any:
    """Declare a step. Returns a `StepCreator`, or a decorator when `body` is omitted."""

    def decorate(fn: BuildFn) -> StepCreator:
        definition = StepDefinition(
            kind=kind,
            body=fn,
            input_schema=as_schema(input_schema),
            output_schema=as_schema(output_schema),
            config_schema=as_schema(config_schema),
            api_schema=api_schema,
            store_factory=store_factory,
            no_history=no_history,
        )
        return StepCreator(definition)

    if body is None:
        return decorate
    return decorate(body)


__all__ = [
    "BuildArgs",
    "BuildFn",
    "Cleanup",
    "Hook",
    "StepAPI",
    "StepCapability",
    "StepCreator",
    "StepDefinition",
    "StepInstance",
    "step",
]
