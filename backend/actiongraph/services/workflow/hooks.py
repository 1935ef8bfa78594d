"""Run lifecycle hooks.

Hooks let the surrounding application record run metadata when a run starts
and finalize it when the run ends. Hook failures never affect the run; the
scheduler logs and swallows them.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class RunLifecycleHooks(Protocol):
    """Callbacks invoked around a run."""

    async def on_run_start(self, run_id: str, workflow_id: str) -> None: ...

    async def on_run_finalize(self, run_id: str) -> None: ...


class NullRunHooks:
    """Hooks that do nothing."""

    async def on_run_start(self, run_id: str, workflow_id: str) -> None:
        return None

    async def on_run_finalize(self, run_id: str) -> None:
        return None


__all__ = ["NullRunHooks", "RunLifecycleHooks"]
