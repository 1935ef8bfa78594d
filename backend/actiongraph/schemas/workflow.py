"""Pydantic schemas for workflow definitions.

A workflow definition is the compiled, declarative form of a workflow graph:
an ordered list of actions, one entrypoint, and per-node stream/group
metadata. It is supplied once per run and never mutated.

The models are frozen but `params` and `nodes` are plain dicts. Runs never
read them directly: WorkflowTopology snapshots both when it is built, so a
later change to the dicts only takes effect through a new topology.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import Field, field_validator, model_validator

from actiongraph.models.enums import JoinStrategy
from actiongraph.schemas.base import FrozenSchema

# Refs are addressed in reference expressions as `<ref>.<field.path>`,
# so they cannot contain dots, braces or whitespace.
ACTION_REF_PATTERN = re.compile(r"^[^\s.{}\[\]]+$")


class InputMapping(FrozenSchema):
    """Port wiring from an upstream action's output handle.

    Attributes:
        source_ref: Ref of the producing action.
        source_handle: Dotted field path inside the producer's output.
                       None wires the whole output.
    """

    source_ref: str = Field(..., min_length=1)
    source_handle: str | None = None


class Action(FrozenSchema):
    """A single node of the execution graph.

    Attributes:
        ref: Unique id within the workflow.
        component_id: Identifies the runnable behavior.
        params: Parameter name to literal value or reference expression.
        depends_on: Ordering-only dependencies (no data flow).
        input_mappings: Input port name to upstream output handle.
        max_attempts: Attempts allowed when the component reports failure.
        timeout_seconds: Per-action timeout, enforced by the action runner.
    """

    ref: str = Field(..., min_length=1)
    component_id: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    depends_on: tuple[str, ...] = Field(default_factory=tuple)
    input_mappings: dict[str, InputMapping] = Field(default_factory=dict)
    max_attempts: int = Field(default=1, ge=1, le=10)
    timeout_seconds: float | None = Field(default=None, gt=0)

    @field_validator("ref")
    @classmethod
    def validate_ref(cls, v: str) -> str:
        """Reject refs that cannot be addressed by a reference expression."""
        if not ACTION_REF_PATTERN.match(v):
            raise ValueError(
                f"Invalid action ref {v!r}: must not contain dots, braces, "
                "brackets or whitespace"
            )
        return v


class NodeMetadata(FrozenSchema):
    """Stream/group metadata attached to an action.

    Attributes:
        stream_id: Fan-out lineage the instance belongs to.
        group_id: Cluster of sibling instances sharing one join point.
        join_strategy: Gate used when this node joins upstream groups.
    """

    stream_id: str | None = None
    group_id: str | None = None
    join_strategy: JoinStrategy | None = None


class EntrypointRef(FrozenSchema):
    """Reference to the action that starts the run."""

    ref: str = Field(..., min_length=1)


class WorkflowDefinition(FrozenSchema):
    """Compiled workflow definition.

    Example:
        >>> definition = WorkflowDefinition.model_validate({
        ...     "entrypoint": {"ref": "start"},
        ...     "actions": [
        ...         {"ref": "start", "componentId": "core.workflow.entrypoint"},
        ...         {"ref": "scan", "componentId": "security.nmap",
        ...          "params": {"target": "{{start.host}}"}},
        ...     ],
        ... })
    """

    title: str | None = None
    version: int = Field(default=1, ge=1)
    entrypoint: EntrypointRef
    actions: tuple[Action, ...] = Field(default_factory=tuple)
    nodes: dict[str, NodeMetadata] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def coerce_entrypoint(cls, data: Any) -> Any:
        """Accept a bare ref string as the entrypoint."""
        if isinstance(data, dict):
            entrypoint = data.get("entrypoint")
            if isinstance(entrypoint, str):
                return {**data, "entrypoint": {"ref": entrypoint}}
        return data

    @property
    def refs(self) -> list[str]:
        """Action refs in definition order."""
        return [action.ref for action in self.actions]

    def get_action(self, ref: str) -> Action | None:
        """Find an action by ref."""
        for action in self.actions:
            if action.ref == ref:
                return action
        return None

    def metadata_for(self, ref: str) -> NodeMetadata:
        """Node metadata for a ref (empty metadata when none declared)."""
        return self.nodes.get(ref) or NodeMetadata()


__all__ = [
    "ACTION_REF_PATTERN",
    "Action",
    "EntrypointRef",
    "InputMapping",
    "NodeMetadata",
    "WorkflowDefinition",
]
