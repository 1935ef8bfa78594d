"""Tests for ComponentRegistry and RegistryActionRunner."""

import asyncio

import pytest

from actiongraph.models.enums import JoinStrategy
from actiongraph.schemas.execution import ActionContext, ActionInvocation, ActionMetadata
from actiongraph.services.workflow.exceptions import ComponentFailure, ComponentNotFoundError
from actiongraph.services.workflow.runner import (
    ActionRunner,
    ComponentRegistry,
    RegistryActionRunner,
    get_registry,
)


def _context(ref: str = "a", params: dict | None = None) -> ActionContext:
    return ActionContext(
        run_id="run-1",
        workflow_id="wf-1",
        params=params or {},
        metadata=ActionMetadata(stream_id=ref, join_strategy=JoinStrategy.ALL),
    )


class TestComponentRegistry:
    """Tests for handler registration."""

    def test_entrypoint_component_is_builtin(self, settings) -> None:
        """Test the graph-input component is always registered."""
        registry = ComponentRegistry(settings)
        assert settings.GRAPH_INPUT_COMPONENT_ID in registry
        assert registry.list_registered() == [settings.GRAPH_INPUT_COMPONENT_ID]

    def test_decorator_registers_handler(self, settings) -> None:
        """Test the component decorator registers and returns the handler."""
        registry = ComponentRegistry(settings)

        @registry.component("test.echo")
        async def echo(context: ActionContext) -> dict:
            return dict(context.params)

        assert registry.get("test.echo") is echo
        registry.unregister("test.echo")
        assert "test.echo" not in registry

    def test_unknown_component(self, settings) -> None:
        """Test looking up an unregistered id fails."""
        with pytest.raises(ComponentNotFoundError) as exc_info:
            ComponentRegistry(settings).get("missing")
        assert exc_info.value.component_id == "missing"

    def test_global_registry_singleton(self) -> None:
        """Test get_registry returns one shared instance."""
        assert get_registry() is get_registry()


class TestRegistryActionRunner:
    """Tests for dispatching through the registry."""

    def test_satisfies_runner_protocol(self, settings) -> None:
        """Test the registry runner is an ActionRunner."""
        runner = RegistryActionRunner(ComponentRegistry(settings), settings=settings)
        assert isinstance(runner, ActionRunner)

    @pytest.mark.asyncio
    async def test_entrypoint_echoes_runtime_inputs(self, settings) -> None:
        """Test the built-in entrypoint returns the run inputs as its output."""
        runner = RegistryActionRunner(ComponentRegistry(settings), settings=settings)
        context = _context("start", {settings.RUNTIME_INPUTS_KEY: {"host": "h"}})

        output = await runner.execute(
            ActionInvocation(ref="start", component_id=settings.GRAPH_INPUT_COMPONENT_ID),
            context,
        )
        assert output == {"host": "h"}

    @pytest.mark.asyncio
    async def test_unknown_component_raises(self, settings) -> None:
        """Test a missing handler propagates as an infrastructure error."""
        runner = RegistryActionRunner(ComponentRegistry(settings), settings=settings)
        with pytest.raises(ComponentNotFoundError):
            await runner.execute(ActionInvocation(ref="a", component_id="nope"), _context())

    @pytest.mark.asyncio
    async def test_timeout_becomes_component_failure(self, settings) -> None:
        """Test a handler exceeding its timeout is a component failure."""
        registry = ComponentRegistry(settings)

        @registry.component("test.slow")
        async def slow(context: ActionContext) -> None:
            await asyncio.sleep(10)

        runner = RegistryActionRunner(registry, settings=settings)
        with pytest.raises(ComponentFailure) as exc_info:
            await runner.execute(
                ActionInvocation(ref="a", component_id="test.slow", timeout_seconds=0.01),
                _context(),
            )
        assert exc_info.value.details == {"timeout_seconds": 0.01}
        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_handler_timeout_error_propagates(self, settings) -> None:
        """Test a TimeoutError raised by the handler itself is not relabeled."""
        registry = ComponentRegistry(settings)

        @registry.component("test.connect")
        async def connect(context: ActionContext) -> None:
            raise TimeoutError("connect to db:5432 timed out")

        runner = RegistryActionRunner(registry, settings=settings)
        with pytest.raises(TimeoutError, match="db:5432"):
            await runner.execute(
                ActionInvocation(ref="a", component_id="test.connect", timeout_seconds=5),
                _context(),
            )

    @pytest.mark.asyncio
    async def test_concurrency_limit(self, settings) -> None:
        """Test no more than max_concurrency handlers run at once."""
        registry = ComponentRegistry(settings)
        running = 0
        peak = 0

        @registry.component("test.work")
        async def work(context: ActionContext) -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        runner = RegistryActionRunner(registry, max_concurrency=2, settings=settings)
        await asyncio.gather(
            *(
                runner.execute(ActionInvocation(ref=f"a{i}", component_id="test.work"), _context())
                for i in range(6)
            )
        )
        assert peak == 2
