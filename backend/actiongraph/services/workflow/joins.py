"""Join-strategy gating for pending actions.

A pending action is gated by its dependency parts: one part per upstream
group (decided by the action's join strategy) and one per non-grouped
dependency (an implicit ``all`` over a single action). The gate reports
WAIT, READY or SKIP for the action as a whole.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, assert_never

from actiongraph.models.enums import ActionStatus, GateDecision, JoinStrategy
from actiongraph.schemas.execution import FailureContext, JoinContext, UpstreamFailure

if TYPE_CHECKING:
    from actiongraph.services.workflow.state import ExecutionState
    from actiongraph.services.workflow.topology import WorkflowTopology


@dataclass(frozen=True)
class GateEvaluation:
    """Gate decision for one action.

    Attributes:
        decision: WAIT, READY or SKIP.
        excused: Siblings the gate did not wait for (any/race joins).
        reason: Why the action is skipped, when it is.
    """

    decision: GateDecision
    excused: frozenset[str] = frozenset()
    reason: str | None = None


def evaluate_gate(strategy: JoinStrategy, statuses: Sequence[ActionStatus]) -> GateDecision:
    """Decide a single join from the statuses of the siblings it waits on.

    Example:
        >>> evaluate_gate(JoinStrategy.RACE, [ActionStatus.FAILED, ActionStatus.RUNNING])
        <GateDecision.WAIT: 'wait'>
    """
    if not statuses:
        return GateDecision.READY

    succeeded = any(status == ActionStatus.SUCCEEDED for status in statuses)
    all_terminal = all(status.is_terminal for status in statuses)

    match strategy:
        case JoinStrategy.ALL:
            if not all_terminal:
                return GateDecision.WAIT
            return GateDecision.READY if succeeded else GateDecision.SKIP
        case JoinStrategy.ANY:
            if any(s in (ActionStatus.SUCCEEDED, ActionStatus.FAILED) for s in statuses):
                return GateDecision.READY
            if all(status == ActionStatus.SKIPPED for status in statuses):
                return GateDecision.SKIP
            return GateDecision.WAIT
        case JoinStrategy.RACE:
            if succeeded:
                return GateDecision.READY
            return GateDecision.SKIP if all_terminal else GateDecision.WAIT
        case _:
            assert_never(strategy)


def evaluate_action_gate(
    topology: WorkflowTopology,
    ref: str,
    statuses: Mapping[str, ActionStatus],
) -> GateEvaluation:
    """Combine the gates of every dependency part of an action.

    SKIP wins over WAIT, which wins over READY.
    """
    strategy = topology.node(ref).join_strategy
    waiting = False
    excused: set[str] = set()

    for part in topology.dependency_parts(ref):
        part_statuses = [statuses[dependency] for dependency in part.refs]

        if part.group_id is None:
            decision = evaluate_gate(JoinStrategy.ALL, part_statuses)
            if decision == GateDecision.SKIP:
                dependency = part.refs[0]
                return GateEvaluation(
                    GateDecision.SKIP,
                    reason=f"upstream '{dependency}' {statuses[dependency]}",
                )
        else:
            decision = evaluate_gate(strategy, part_statuses)
            if decision == GateDecision.SKIP:
                return GateEvaluation(
                    GateDecision.SKIP,
                    reason=f"no member of group '{part.group_id}' succeeded ({strategy} join)",
                )
            if decision == GateDecision.READY:
                excused.update(
                    dependency
                    for dependency, status in zip(part.refs, part_statuses, strict=True)
                    if not status.is_terminal
                )

        if decision == GateDecision.WAIT:
            waiting = True

    if waiting:
        return GateEvaluation(GateDecision.WAIT)
    return GateEvaluation(GateDecision.READY, excused=frozenset(excused))


def latest_trigger(topology: WorkflowTopology, ref: str, state: ExecutionState) -> str | None:
    """Dependency whose completion most recently unblocked the action."""
    latest: tuple[int, str] | None = None
    for dependency in topology.dependencies(ref):
        sequence = state[dependency].terminal_sequence
        if sequence is not None and (latest is None or sequence > latest[0]):
            latest = (sequence, dependency)
    return latest[1] if latest else None


def build_join_contexts(
    topology: WorkflowTopology,
    ref: str,
    state: ExecutionState,
    results: Mapping[str, Any],
) -> list[JoinContext]:
    """Snapshot every upstream group of an action at release time."""
    strategy = topology.node(ref).join_strategy
    contexts: list[JoinContext] = []
    for part in topology.dependency_parts(ref):
        if part.group_id is None:
            continue
        outputs: dict[str, Any] = {}
        failed: dict[str, str | None] = {}
        skipped: list[str] = []
        pending: list[str] = []
        for sibling in part.refs:
            sibling_state = state[sibling]
            match sibling_state.status:
                case ActionStatus.SUCCEEDED:
                    outputs[sibling] = results.get(sibling)
                case ActionStatus.FAILED:
                    failed[sibling] = sibling_state.error
                case ActionStatus.SKIPPED:
                    skipped.append(sibling)
                case _:
                    pending.append(sibling)
        contexts.append(
            JoinContext(
                group_id=part.group_id,
                strategy=strategy,
                outputs=outputs,
                failed=failed,
                skipped=skipped,
                pending=pending,
                stream_ids={sibling: topology.node(sibling).stream_id for sibling in part.refs},
            )
        )
    return contexts


def build_failure_context(
    topology: WorkflowTopology,
    ref: str,
    state: ExecutionState,
) -> FailureContext | None:
    """Upstream actions that failed or were skipped but did not block the action."""
    upstream = [
        UpstreamFailure(
            ref=dependency,
            status=state[dependency].status,
            error=state[dependency].error,
        )
        for dependency in topology.dependencies(ref)
        if state[dependency].status in (ActionStatus.FAILED, ActionStatus.SKIPPED)
    ]
    return FailureContext(upstream=upstream) if upstream else None


__all__ = [
    "GateEvaluation",
    "build_failure_context",
    "build_join_contexts",
    "evaluate_action_gate",
    "evaluate_gate",
    "latest_trigger",
]
