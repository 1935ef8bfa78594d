"""Definition validation and scheduler exceptions.

This module defines the exception hierarchy for workflow definition
validation and for run execution:

- DAGValidationError and subclasses are raised before any action dispatches.
- ExecutionError and subclasses abort a run; the fatal ones carry the
  partial RunResult so callers never get a bare exception without context.
- ComponentFailure is how a component reports an unsuccessful result; the
  scheduler records it locally and never lets it escape.
- UnresolvedReferenceWarning is a non-fatal record attached to an action's
  execution context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from actiongraph.schemas.execution import RunResult


# ============================================================================
# Definition Validation Exceptions
# ============================================================================


class DAGValidationError(Exception):
    """Base exception for definition validation errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code.
        details: Additional error context as dictionary.
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class CycleError(DAGValidationError):
    """Raised when the dependency graph (including join edges) has a cycle.

    Attributes:
        cycle_path: Refs forming the cycle, first ref repeated at the end.
    """

    def __init__(self, cycle_path: list[str]) -> None:
        super().__init__(
            message=f"Cycle detected: {' -> '.join(cycle_path)}",
            error_code="CYCLE_DETECTED",
            details={"cycle_path": list(cycle_path)},
        )
        self.cycle_path = cycle_path


class DanglingReferenceError(DAGValidationError):
    """Raised when an action references refs that do not exist.

    Attributes:
        references: Mapping of referencing ref to the unknown refs it uses.
    """

    def __init__(self, references: dict[str, list[str]]) -> None:
        described = "; ".join(
            f"{ref} -> {', '.join(missing)}" for ref, missing in references.items()
        )
        super().__init__(
            message=f"Dangling references: {described}",
            error_code="DANGLING_REFERENCE",
            details={"references": {k: list(v) for k, v in references.items()}},
        )
        self.references = references


class UnknownEntrypointError(DAGValidationError):
    """Raised when the entrypoint ref is not one of the actions."""

    def __init__(self, ref: str) -> None:
        super().__init__(
            message=f"Entrypoint {ref!r} is not an action of this workflow",
            error_code="UNKNOWN_ENTRYPOINT",
            details={"entrypoint": ref},
        )
        self.ref = ref


class EntrypointDependencyError(DAGValidationError):
    """Raised when the entrypoint action itself depends on other actions."""

    def __init__(self, ref: str, dependencies: list[str]) -> None:
        super().__init__(
            message=f"Entrypoint {ref!r} must not depend on: {', '.join(dependencies)}",
            error_code="ENTRYPOINT_HAS_DEPENDENCIES",
            details={"entrypoint": ref, "dependencies": list(dependencies)},
        )
        self.ref = ref
        self.dependencies = dependencies


class DuplicateActionError(DAGValidationError):
    """Raised when two actions share a ref."""

    def __init__(self, refs: list[str]) -> None:
        super().__init__(
            message=f"Duplicate action refs: {', '.join(refs)}",
            error_code="DUPLICATE_ACTION",
            details={"refs": list(refs)},
        )
        self.refs = refs


class GraphTooLargeError(DAGValidationError):
    """Raised when a definition exceeds the configured action limit."""

    def __init__(self, current: int, limit: int) -> None:
        super().__init__(
            message=f"Graph too large: {current} actions (limit: {limit})",
            error_code="GRAPH_TOO_LARGE",
            details={"current": current, "limit": limit},
        )
        self.current = current
        self.limit = limit


# ============================================================================
# Run Execution Exceptions
# ============================================================================


class ExecutionError(Exception):
    """Base exception for run execution errors.

    Attributes:
        message: Human-readable error message.
        result: Partial run result, when the error aborted a run.
    """

    def __init__(self, message: str, result: RunResult | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.result = result


class InfrastructureFailure(ExecutionError):
    """Raised when the action runner itself could not run an action.

    Attributes:
        ref: Ref of the action being dispatched.
        original_error: The exception raised by the runner.
    """

    def __init__(
        self,
        ref: str,
        original_error: BaseException,
        result: RunResult | None = None,
    ) -> None:
        super().__init__(
            f"Action runner failed for {ref!r}: "
            f"{type(original_error).__name__}: {original_error}",
            result,
        )
        self.ref = ref
        self.original_error = original_error


class DeadlockError(ExecutionError):
    """Raised when pending actions can never become ready.

    Attributes:
        pending_refs: Refs left pending with nothing running.
    """

    def __init__(self, pending_refs: list[str], result: RunResult | None = None) -> None:
        super().__init__(
            f"Run is stuck: {len(pending_refs)} action(s) pending with nothing "
            f"running: {', '.join(pending_refs)}",
            result,
        )
        self.pending_refs = pending_refs


class ReplayDivergenceError(ExecutionError):
    """Raised when recorded history does not match the scheduler's decisions."""

    def __init__(self, ref: str, attempt: int, running: list[str]) -> None:
        super().__init__(
            f"History expects completion of {ref!r} (attempt {attempt}) but it is "
            f"not running; running: {', '.join(running) or 'none'}",
        )
        self.ref = ref
        self.attempt = attempt
        self.running = running


class RunAlreadyActiveError(ExecutionError):
    """Raised when a run id is started while a run with that id is still active."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id!r} is already active on this scheduler")
        self.run_id = run_id


class UnresolvedProducerError(ExecutionError):
    """Raised when params reference an action that has not finished yet."""

    def __init__(self, ref: str, producer_ref: str) -> None:
        super().__init__(
            f"Cannot resolve params of {ref!r}: {producer_ref!r} has not completed",
        )
        self.ref = ref
        self.producer_ref = producer_ref


class IllegalTransitionError(ExecutionError):
    """Raised on a state change the action lifecycle does not allow."""

    def __init__(self, ref: str, current: str, requested: str) -> None:
        super().__init__(f"Action {ref!r} cannot move from {current} to {requested}")
        self.ref = ref
        self.current = current
        self.requested = requested


class ResultOverwriteError(ExecutionError):
    """Raised when an output is recorded twice for the same ref."""

    def __init__(self, ref: str) -> None:
        super().__init__(f"Output for {ref!r} is already recorded")
        self.ref = ref


class ComponentNotFoundError(ExecutionError):
    """Raised by the registry runner when no component handles an id."""

    def __init__(self, component_id: str) -> None:
        super().__init__(f"No component registered for id: {component_id}")
        self.component_id = component_id


# ============================================================================
# Component-level failure and warnings
# ============================================================================


@dataclass
class ComponentFailure(Exception):
    """Raised by a component or runner when the action ran but failed.

    Attributes:
        message: Failure description recorded as the action's error.
        details: Extra context (exit codes, timeouts, ...).
    """

    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


@dataclass
class UnresolvedReferenceWarning(UserWarning):
    """A parameter reference that resolved to nothing.

    Attributes:
        target: Parameter path being resolved (e.g. ``targets[0]``).
        source_ref: Referenced action.
        source_path: Dotted field path inside the referenced output.
        reason: missing_field, upstream_failed, upstream_skipped or
                not_completed.
    """

    target: str
    source_ref: str
    source_path: str
    reason: str

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Human-readable warning text."""
        source = f"{self.source_ref}.{self.source_path}" if self.source_path else self.source_ref
        match self.reason:
            case "upstream_failed":
                detail = f"upstream action '{self.source_ref}' failed"
            case "upstream_skipped":
                detail = f"upstream action '{self.source_ref}' was skipped"
            case "not_completed":
                detail = (
                    f"upstream action '{self.source_ref}' had not completed "
                    "when the join opened"
                )
            case _:
                detail = "field not found in upstream output"
        return f"Input '{self.target}' references '{source}' but {detail}; value left unset"

    def __str__(self) -> str:
        return self.message


__all__ = [
    "ComponentFailure",
    "ComponentNotFoundError",
    "CycleError",
    "DAGValidationError",
    "DanglingReferenceError",
    "DeadlockError",
    "DuplicateActionError",
    "EntrypointDependencyError",
    "ExecutionError",
    "GraphTooLargeError",
    "IllegalTransitionError",
    "InfrastructureFailure",
    "ReplayDivergenceError",
    "ResultOverwriteError",
    "UnknownEntrypointError",
    "UnresolvedProducerError",
    "UnresolvedReferenceWarning",
]
