"""Pydantic schemas for workflow definitions, dispatch payloads and results."""

from actiongraph.schemas.base import BaseSchema, FrozenSchema
from actiongraph.schemas.execution import (
    ActionContext,
    ActionInvocation,
    ActionMetadata,
    ActionRecord,
    CompletionEvent,
    FailureContext,
    JoinContext,
    RunResult,
    UpstreamFailure,
)
from actiongraph.schemas.validation import TopologyLevel, TopologyResult
from actiongraph.schemas.workflow import (
    Action,
    EntrypointRef,
    InputMapping,
    NodeMetadata,
    WorkflowDefinition,
)

__all__ = [
    "Action",
    "ActionContext",
    "ActionInvocation",
    "ActionMetadata",
    "ActionRecord",
    "BaseSchema",
    "CompletionEvent",
    "EntrypointRef",
    "FailureContext",
    "FrozenSchema",
    "InputMapping",
    "JoinContext",
    "NodeMetadata",
    "RunResult",
    "TopologyLevel",
    "TopologyResult",
    "UpstreamFailure",
    "WorkflowDefinition",
]
