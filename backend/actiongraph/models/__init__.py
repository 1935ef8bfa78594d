"""Domain enums shared by schemas and services."""

from actiongraph.models.enums import (
    ActionOutcome,
    ActionStatus,
    GateDecision,
    JoinStrategy,
    RunStatus,
)

__all__ = [
    "ActionOutcome",
    "ActionStatus",
    "GateDecision",
    "JoinStrategy",
    "RunStatus",
]
