"""Action runner contract and the registry-backed runner.

The scheduler hands every ready action to an ActionRunner. What an action
does (scanning, calling an API, ...) is entirely the runner's business; the
scheduler only sees the returned output or the raised exception.

RegistryActionRunner dispatches by component id to handlers registered in a
ComponentRegistry, enforces per-action timeouts and optionally bounds
concurrency.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeAlias, runtime_checkable

from actiongraph.core.config import Settings, get_settings
from actiongraph.schemas.execution import ActionContext, ActionInvocation
from actiongraph.services.workflow.exceptions import ComponentFailure, ComponentNotFoundError

logger = logging.getLogger(__name__)

ComponentHandler: TypeAlias = Callable[[ActionContext], Awaitable[Any]]


@runtime_checkable
class ActionRunner(Protocol):
    """Executes one action attempt and returns its output.

    Raise ComponentFailure (or return ``{"success": False, "error": ...}``)
    to report that the action ran but failed. Any other exception is treated
    as an infrastructure failure and aborts the run.
    """

    async def execute(self, action: ActionInvocation, context: ActionContext) -> Any: ...


class ComponentRegistry:
    """Registry of component handlers keyed by component id.

    Example:
        registry = ComponentRegistry()

        @registry.component("security.nmap")
        async def run_nmap(context: ActionContext) -> dict[str, Any]:
            ...
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize registry and register the built-in entrypoint component."""
        self.settings = settings or get_settings()
        self._handlers: dict[str, ComponentHandler] = {}
        self.register(self.settings.GRAPH_INPUT_COMPONENT_ID, self._echo_runtime_inputs)

    async def _echo_runtime_inputs(self, context: ActionContext) -> dict[str, Any]:
        """Built-in graph-input component: echoes the run's runtime inputs."""
        return dict(context.params.get(self.settings.RUNTIME_INPUTS_KEY) or {})

    def register(self, component_id: str, handler: ComponentHandler) -> None:
        """Register a handler for a component id.

        Note:
            An existing handler for the same id is replaced.
        """
        self._handlers[component_id] = handler

    def component(self, component_id: str) -> Callable[[ComponentHandler], ComponentHandler]:
        """Decorator form of ``register``."""

        def decorator(handler: ComponentHandler) -> ComponentHandler:
            self.register(component_id, handler)
            return handler

        return decorator

    def unregister(self, component_id: str) -> None:
        self._handlers.pop(component_id, None)

    def get(self, component_id: str) -> ComponentHandler:
        """Get the handler for a component id.

        Raises:
            ComponentNotFoundError: If no handler is registered for the id
        """
        if component_id not in self._handlers:
            raise ComponentNotFoundError(component_id)
        return self._handlers[component_id]

    def list_registered(self) -> list[str]:
        """List all registered component ids."""
        return list(self._handlers)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._handlers


# Module-level singleton for convenience
_registry: ComponentRegistry | None = None


def get_registry() -> ComponentRegistry:
    """Get the global component registry singleton."""
    global _registry
    if _registry is None:
        _registry = ComponentRegistry()
    return _registry


class RegistryActionRunner:
    """ActionRunner that dispatches to ComponentRegistry handlers.

    Attributes:
        registry: Handlers by component id.
        max_concurrency: Upper bound on concurrently executing actions
                         (None for unbounded).
    """

    def __init__(
        self,
        registry: ComponentRegistry | None = None,
        *,
        max_concurrency: int | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or get_registry()
        if max_concurrency is None:
            max_concurrency = self.settings.RUNNER_MAX_CONCURRENCY
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def execute(self, action: ActionInvocation, context: ActionContext) -> Any:
        """Run the handler for an action within its timeout.

        Raises:
            ComponentNotFoundError: Unknown component id (infrastructure).
            ComponentFailure: The handler timed out or reported failure.
        """
        handler = self.registry.get(action.component_id)
        if self._semaphore is None:
            return await self._run(handler, action, context)
        async with self._semaphore:
            return await self._run(handler, action, context)

    async def _run(
        self,
        handler: ComponentHandler,
        action: ActionInvocation,
        context: ActionContext,
    ) -> Any:
        timeout_seconds = action.timeout_seconds or self.settings.DEFAULT_ACTION_TIMEOUT_SECONDS
        deadline = asyncio.timeout(timeout_seconds)
        try:
            async with deadline:
                return await handler(context)
        except TimeoutError as e:
            # a TimeoutError raised by the handler itself is not ours to relabel
            if not deadline.expired():
                raise
            logger.warning(
                f"Action {action.ref} ({action.component_id}) timed out after {timeout_seconds}s"
            )
            raise ComponentFailure(
                message=f"Action timed out after {timeout_seconds} seconds",
                details={"timeout_seconds": timeout_seconds},
            ) from e


__all__ = [
    "ActionRunner",
    "ComponentHandler",
    "ComponentRegistry",
    "RegistryActionRunner",
    "get_registry",
]
