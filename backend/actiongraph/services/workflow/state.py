"""Per-run execution state and result store.

Both structures are owned by the scheduler coroutine, which is their only
writer. Other components (the resolver, join evaluation, reporting) read
them through read-only mapping views.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from actiongraph.models.enums import ActionStatus
from actiongraph.schemas.execution import ActionRecord
from actiongraph.services.workflow.exceptions import IllegalTransitionError, ResultOverwriteError

if TYPE_CHECKING:
    from actiongraph.schemas.workflow import Action

_TRANSITIONS: dict[ActionStatus, frozenset[ActionStatus]] = {
    ActionStatus.PENDING: frozenset({ActionStatus.READY, ActionStatus.SKIPPED}),
    ActionStatus.READY: frozenset({ActionStatus.RUNNING}),
    ActionStatus.RUNNING: frozenset({ActionStatus.SUCCEEDED, ActionStatus.FAILED}),
    ActionStatus.FAILED: frozenset({ActionStatus.RUNNING}),
    ActionStatus.SUCCEEDED: frozenset(),
    ActionStatus.SKIPPED: frozenset(),
}


@dataclass(slots=True)
class ActionState:
    """Mutable state of one action within a run.

    Attributes:
        handle: Definition index of the action.
        terminal_sequence: Logical time the action last became terminal;
                           orders completions for ``triggered_by``.
    """

    handle: int
    ref: str
    component_id: str
    scheduled: bool
    status: ActionStatus = ActionStatus.PENDING
    output: Any = None
    error: str | None = None
    triggered_by: str | None = None
    attempt: int = 0
    warnings: list[str] = field(default_factory=list)
    skip_reason: str | None = None
    terminal_sequence: int | None = None

    def to_record(self) -> ActionRecord:
        return ActionRecord(
            ref=self.ref,
            component_id=self.component_id,
            status=self.status,
            scheduled=self.scheduled,
            output=self.output,
            error=self.error,
            warnings=list(self.warnings),
            triggered_by=self.triggered_by,
            attempt=self.attempt,
            skip_reason=self.skip_reason,
        )


class ExecutionState:
    """Status table of every action of a run, indexed by handle.

    Refs map to integer handles (their definition index); lookups by ref go
    through that index so iteration is always in definition order.
    """

    def __init__(self, actions: Iterable[Action], scheduled: Iterable[str]) -> None:
        scheduled_refs = set(scheduled)
        self._states: list[ActionState] = []
        self._handles: dict[str, int] = {}
        for action in actions:
            handle = len(self._states)
            self._handles[action.ref] = handle
            self._states.append(
                ActionState(
                    handle=handle,
                    ref=action.ref,
                    component_id=action.component_id,
                    scheduled=action.ref in scheduled_refs,
                )
            )
        self._statuses: dict[str, ActionStatus] = {s.ref: s.status for s in self._states}
        self._clock = itertools.count(1)

    @property
    def statuses(self) -> Mapping[str, ActionStatus]:
        """Read-only ref -> status view, kept current."""
        return MappingProxyType(self._statuses)

    def handle(self, ref: str) -> int:
        """Definition index of a ref.

        Raises:
            KeyError: If the ref is unknown.
        """
        return self._handles[ref]

    def __getitem__(self, ref: str) -> ActionState:
        return self._states[self._handles[ref]]

    def __contains__(self, ref: object) -> bool:
        return ref in self._handles

    def __iter__(self) -> Iterator[ActionState]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def transition(self, ref: str, status: ActionStatus) -> ActionState:
        """Move an action to a new status.

        Entering RUNNING starts a new attempt. Entering a terminal status
        stamps the action with the next logical time.

        Raises:
            IllegalTransitionError: If the lifecycle does not allow the move.
        """
        state = self[ref]
        if status not in _TRANSITIONS[state.status]:
            raise IllegalTransitionError(ref, str(state.status), str(status))

        state.status = status
        self._statuses[ref] = status
        if status == ActionStatus.RUNNING:
            state.attempt += 1
            state.terminal_sequence = None
        elif status.is_terminal:
            state.terminal_sequence = next(self._clock)
        return state

    def refs_with_status(self, *statuses: ActionStatus, scheduled_only: bool = True) -> list[str]:
        """Refs currently in any of the given statuses, in definition order."""
        return [
            s.ref
            for s in self._states
            if s.status in statuses and (s.scheduled or not scheduled_only)
        ]

    @property
    def all_terminal(self) -> bool:
        """Whether every scheduled action has finished."""
        return all(s.status.is_terminal for s in self._states if s.scheduled)

    def to_records(self) -> dict[str, ActionRecord]:
        """Per-action table in definition order."""
        return {s.ref: s.to_record() for s in self._states}


class ResultStore:
    """Append-only store of succeeded action outputs."""

    def __init__(self) -> None:
        self._outputs: dict[str, Any] = {}

    def record(self, ref: str, output: Any) -> None:
        """Store an action's output.

        Raises:
            ResultOverwriteError: If the ref already has an output.
        """
        if ref in self._outputs:
            raise ResultOverwriteError(ref)
        self._outputs[ref] = output

    @property
    def view(self) -> Mapping[str, Any]:
        """Read-only view of every recorded output."""
        return MappingProxyType(self._outputs)

    def __contains__(self, ref: object) -> bool:
        return ref in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)


__all__ = [
    "ActionState",
    "ExecutionState",
    "ResultStore",
]
