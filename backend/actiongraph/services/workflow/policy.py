"""Failure classification, retry policy and run summarization.

Two kinds of failure reach the scheduler:

- Component failure: the action ran and reported an unsuccessful result,
  either by returning ``{"success": False, ...}`` or by raising
  ComponentFailure. It is recorded on the action and routed around.
- Infrastructure failure: anything else the runner raises. The run cannot
  trust its state any more and is aborted.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from actiongraph.models.enums import ActionOutcome, ActionStatus, RunStatus
from actiongraph.schemas.execution import RunResult
from actiongraph.services.workflow.exceptions import ComponentFailure

if TYPE_CHECKING:
    from actiongraph.schemas.execution import CompletionEvent
    from actiongraph.schemas.workflow import Action
    from actiongraph.services.workflow.state import ExecutionState, ResultStore

DEFAULT_FAILURE_MESSAGE = "Component reported failure"


def is_component_failure(output: Any) -> bool:
    """Whether a component output reports failure (``success`` is False)."""
    return isinstance(output, Mapping) and output.get("success") is False


def extract_failure_message(output: Mapping[str, Any]) -> str:
    """Error text of a failed component output.

    String errors are used as-is; structured errors are serialized to JSON.
    """
    error = output.get("error")
    if isinstance(error, str) and error:
        return error
    if error is not None and not isinstance(error, str):
        try:
            return json.dumps(error, default=str)
        except (TypeError, ValueError):
            return str(error)
    return DEFAULT_FAILURE_MESSAGE


@dataclass(frozen=True)
class AttemptOutcome:
    """Classified result of one action attempt."""

    outcome: ActionOutcome
    output: Any = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == ActionOutcome.SUCCEEDED


class FailurePolicy:
    """Decides how attempt results are recorded and whether to retry."""

    def classify_output(self, output: Any) -> AttemptOutcome:
        """Classify a value returned by the action runner."""
        if is_component_failure(output):
            return AttemptOutcome(
                outcome=ActionOutcome.FAILED,
                output=output,
                error=extract_failure_message(output),
            )
        return AttemptOutcome(outcome=ActionOutcome.SUCCEEDED, output=output)

    def classify_exception(self, error: BaseException) -> AttemptOutcome | None:
        """Classify an exception raised by the action runner.

        Returns:
            A failed AttemptOutcome for component failures, None for
            infrastructure failures.
        """
        if isinstance(error, ComponentFailure):
            return AttemptOutcome(
                outcome=ActionOutcome.FAILED,
                output=None,
                error=error.message or DEFAULT_FAILURE_MESSAGE,
            )
        return None

    def should_retry(self, action: Action, attempt: int) -> bool:
        """Whether a failed attempt may be re-dispatched."""
        return attempt < action.max_attempts

    def summarize(
        self,
        run_id: str,
        workflow_id: str,
        state: ExecutionState,
        results: ResultStore,
        history: list[CompletionEvent],
        *,
        cancelled: bool = False,
        aborted: bool = False,
    ) -> RunResult:
        """Build the run result from final (or partial) state.

        A run whose actions all finished is ``completed`` even when some of
        them failed; ``success`` reports whether every scheduled action
        either succeeded or was routed around without failing.
        """
        errors = {
            s.ref: s.error for s in state if s.scheduled and s.status == ActionStatus.FAILED
        }
        if aborted:
            status = RunStatus.FAILED
        elif cancelled:
            status = RunStatus.CANCELLED
        else:
            status = RunStatus.COMPLETED

        return RunResult(
            run_id=run_id,
            workflow_id=workflow_id,
            status=status,
            success=status == RunStatus.COMPLETED and not errors,
            outputs=dict(results.view),
            errors=errors,
            actions=state.to_records(),
            history=list(history),
        )


__all__ = [
    "DEFAULT_FAILURE_MESSAGE",
    "AttemptOutcome",
    "FailurePolicy",
    "extract_failure_message",
    "is_component_failure",
]
