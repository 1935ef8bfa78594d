"""Domain enum definitions for the ActionGraph scheduler.

This module defines all enum types used across the scheduler for
type-safe representation of domain-specific values.
"""

from enum import Enum


class ActionStatus(str, Enum):
    """Per-action execution state.

    An action moves pending -> ready -> running -> succeeded | failed.
    A failed action may go back to running while retries remain.
    Skipped is terminal and only reachable from pending.
    """

    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        """Whether the status ends the action's lifecycle for gating."""
        return self in (ActionStatus.SUCCEEDED, ActionStatus.FAILED, ActionStatus.SKIPPED)

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


class JoinStrategy(str, Enum):
    """How a convergence node waits on its fan-out siblings."""

    ALL = "all"
    ANY = "any"
    RACE = "race"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


class GateDecision(str, Enum):
    """Outcome of evaluating a join gate for a pending action."""

    WAIT = "wait"
    READY = "ready"
    SKIP = "skip"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


class ActionOutcome(str, Enum):
    """Outcome recorded in a completion event."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


class RunStatus(str, Enum):
    """Run-level state reported in the run result."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


__all__ = [
    "ActionOutcome",
    "ActionStatus",
    "GateDecision",
    "JoinStrategy",
    "RunStatus",
]
