"""Fixtures for workflow validation and scheduler tests.

Provides a definition factory and a scripted action runner whose behavior is
configured per action ref.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from actiongraph.core.config import Settings
from actiongraph.schemas.execution import ActionContext, ActionInvocation
from actiongraph.schemas.workflow import WorkflowDefinition
from actiongraph.services.workflow.scheduler import WorkflowScheduler
from actiongraph.services.workflow.validator import DAGValidator

ENTRYPOINT_COMPONENT = "core.workflow.entrypoint"


class ScriptedRunner:
    """Action runner driven by a per-ref script.

    A ref's behavior is one of:
    - missing: return ``{"ref": ref, "params": params}``
    - an exception instance: raise it
    - a callable: call it with the context and return its result
    - a list: one behavior per attempt (last one repeats)
    - anything else: return it as the output
    """

    def __init__(
        self,
        behaviors: dict[str, Any] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.behaviors = behaviors or {}
        self.delays = delays or {}
        self.calls: list[tuple[str, ActionContext]] = []
        self.running = 0
        self.max_running = 0

    @property
    def called_refs(self) -> list[str]:
        return [ref for ref, _ in self.calls]

    def context_for(self, ref: str, attempt: int = 1) -> ActionContext:
        for called_ref, context in self.calls:
            if called_ref == ref and context.metadata.attempt == attempt:
                return context
        raise AssertionError(f"{ref} attempt {attempt} was never executed")

    async def execute(self, action: ActionInvocation, context: ActionContext) -> Any:
        self.calls.append((action.ref, context))
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            delay = self.delays.get(action.ref, 0)
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)

            behavior = self.behaviors.get(action.ref)
            if isinstance(behavior, list):
                behavior = behavior[min(context.metadata.attempt, len(behavior)) - 1]

            if behavior is None:
                return {"ref": action.ref, "params": context.params}
            if isinstance(behavior, BaseException):
                raise behavior
            if callable(behavior):
                return behavior(context)
            return behavior
        finally:
            self.running -= 1


@pytest.fixture
def make_definition() -> Callable[..., WorkflowDefinition]:
    """Factory for definitions.

    Actions are given as dicts; an entrypoint action named ``start`` is
    prepended unless ``with_start=False``.
    """

    def _make(
        *actions: dict[str, Any],
        entrypoint: str = "start",
        nodes: dict[str, dict[str, Any]] | None = None,
        with_start: bool = True,
    ) -> WorkflowDefinition:
        action_list = list(actions)
        if with_start:
            action_list.insert(0, {"ref": "start", "componentId": ENTRYPOINT_COMPONENT})
        return WorkflowDefinition.model_validate(
            {
                "title": "test workflow",
                "entrypoint": {"ref": entrypoint},
                "actions": action_list,
                "nodes": nodes or {},
            }
        )

    return _make


@pytest.fixture
def validator(settings: Settings) -> DAGValidator:
    """Validator without a cache."""
    return DAGValidator(settings)


@pytest.fixture
def make_scheduler(settings: Settings, validator: DAGValidator) -> Callable[..., WorkflowScheduler]:
    """Factory for schedulers using test settings and an uncached validator."""

    def _make(definition: WorkflowDefinition, runner: Any, **kwargs: Any) -> WorkflowScheduler:
        kwargs.setdefault("validator", validator)
        kwargs.setdefault("settings", settings)
        return WorkflowScheduler(definition, runner, **kwargs)

    return _make


@pytest.fixture
def scripted_runner() -> type[ScriptedRunner]:
    """The ScriptedRunner class, for tests that build their own runners."""
    return ScriptedRunner
