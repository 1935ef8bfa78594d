"""Pydantic schemas for action dispatch and run reporting.

These are the payloads exchanged with external collaborators:
- ActionInvocation / ActionContext are handed to the action runner
- CompletionEvent is the unit of run history used for durable replay
- ActionRecord / RunResult are reported to the surrounding application
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from actiongraph.models.enums import ActionOutcome, ActionStatus, JoinStrategy, RunStatus
from actiongraph.schemas.base import BaseSchema, FrozenSchema


# =============================================================================
# Dispatch payloads
# =============================================================================


class ActionInvocation(FrozenSchema):
    """Identity of the action being executed."""

    ref: str
    component_id: str
    timeout_seconds: float | None = None


class UpstreamFailure(FrozenSchema):
    """An upstream action that did not succeed but was routed around."""

    ref: str
    status: ActionStatus
    error: str | None = None


class FailureContext(FrozenSchema):
    """Upstream failures tolerated by the join gate of this action."""

    upstream: list[UpstreamFailure] = Field(default_factory=list)


class JoinContext(FrozenSchema):
    """State of one upstream group at the moment the join node was released.

    Attributes:
        group_id: Group that was joined.
        strategy: Gate used for the join.
        outputs: Succeeded sibling outputs keyed by ref, in definition order.
        failed: Failed sibling errors keyed by ref.
        skipped: Siblings that were skipped.
        pending: Siblings still in flight when the gate opened (any/race).
        stream_ids: Stream id of every sibling, keyed by ref.
    """

    group_id: str
    strategy: JoinStrategy
    outputs: dict[str, Any] = Field(default_factory=dict)
    failed: dict[str, str | None] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list)
    pending: list[str] = Field(default_factory=list)
    stream_ids: dict[str, str] = Field(default_factory=dict)


class ActionMetadata(FrozenSchema):
    """Scheduling metadata passed alongside resolved params."""

    stream_id: str
    group_id: str | None = None
    join_strategy: JoinStrategy
    triggered_by: str | None = None
    failure: FailureContext | None = None
    joins: list[JoinContext] = Field(default_factory=list)
    attempt: int = 1


class ActionContext(FrozenSchema):
    """Everything the action runner needs to execute one action attempt."""

    run_id: str
    workflow_id: str
    params: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    metadata: ActionMetadata


# =============================================================================
# History and reporting
# =============================================================================


class CompletionEvent(FrozenSchema):
    """One completed action attempt, in the order the scheduler applied it.

    Attributes:
        sequence: Position in the run history.
        batch: Completions the scheduler applied together share a batch;
               None replays the event on its own.
    """

    sequence: int = Field(..., ge=0)
    batch: int | None = Field(default=None, ge=0)
    ref: str
    attempt: int = Field(..., ge=1)
    outcome: ActionOutcome
    output: Any = None
    error: str | None = None


class ActionRecord(BaseSchema):
    """Per-action row of the run result table."""

    ref: str
    component_id: str
    status: ActionStatus
    scheduled: bool = True
    output: Any = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    triggered_by: str | None = None
    attempt: int = 0
    skip_reason: str | None = None


class RunResult(BaseSchema):
    """Aggregated outcome of a run, including the full per-action table.

    Attributes:
        run_id: Run identifier supplied by the caller.
        workflow_id: Workflow identifier supplied by the caller.
        status: completed, failed or cancelled.
        success: False when any scheduled action failed, or the run was
                 cancelled or aborted.
        outputs: Outputs of succeeded actions keyed by ref.
        errors: Errors of failed actions keyed by ref.
        actions: Every action of the definition, scheduled or not.
        history: Ordered completion events (durable replay input).
    """

    run_id: str
    workflow_id: str
    status: RunStatus
    success: bool
    outputs: dict[str, Any] = Field(default_factory=dict)
    errors: dict[str, str | None] = Field(default_factory=dict)
    actions: dict[str, ActionRecord] = Field(default_factory=dict)
    history: list[CompletionEvent] = Field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        """Whether the run was cancelled before completion."""
        return self.status == RunStatus.CANCELLED

    def refs_with_status(self, status: ActionStatus) -> list[str]:
        """Refs whose final status matches, in definition order."""
        return [ref for ref, record in self.actions.items() if record.status == status]

    def to_summary(self) -> dict[str, Any]:
        """Compact summary suitable for a single log line or API response."""
        counts: dict[str, int] = {}
        for record in self.actions.values():
            counts[str(record.status)] = counts.get(str(record.status), 0) + 1
        return {
            "run_id": self.run_id,
            "workflow_id": self.workflow_id,
            "status": str(self.status),
            "success": self.success,
            "action_counts": counts,
            "failed": sorted(self.errors),
        }


__all__ = [
    "ActionContext",
    "ActionInvocation",
    "ActionMetadata",
    "ActionRecord",
    "CompletionEvent",
    "FailureContext",
    "JoinContext",
    "RunResult",
    "UpstreamFailure",
]
