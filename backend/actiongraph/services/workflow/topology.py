"""Derived structure of a workflow definition.

WorkflowTopology is built once per definition and holds everything the
validator, the resolver and the scheduler derive from it: parsed params,
per-action dependencies (including group-implied join edges), the dependency
graph, resolved stream/group metadata and the set of actions a run schedules.

Construction never raises for an invalid definition; problems are exposed
(``duplicate_refs``, ``dangling_references``) for the validator to report.

Params are parsed into immutable trees and node metadata is resolved at
construction, so the topology is a snapshot of the definition.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from actiongraph.core.config import Settings, get_settings
from actiongraph.models.enums import JoinStrategy
from actiongraph.services.workflow.algorithms import GraphAlgorithms
from actiongraph.services.workflow.graph import Graph
from actiongraph.services.workflow.references import (
    ParamValue,
    ReferencePath,
    ReferenceValue,
    collect_references,
    parse_expression,
    parse_value,
)

if TYPE_CHECKING:
    from actiongraph.schemas.workflow import Action, InputMapping, WorkflowDefinition


@dataclass(frozen=True, slots=True)
class ResolvedNode:
    """Node metadata with defaults applied."""

    stream_id: str
    group_id: str | None
    join_strategy: JoinStrategy


@dataclass(frozen=True, slots=True)
class DependencyPart:
    """One gate input of an action.

    A part is either every member of an upstream group (``group_id`` set) or
    a single non-grouped dependency.
    """

    group_id: str | None
    refs: tuple[str, ...]


def definition_fingerprint(definition: WorkflowDefinition) -> str:
    """SHA-256 of the definition's canonical JSON."""
    payload = definition.model_dump(mode="json", by_alias=True)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _mapping_reference(mapping: InputMapping) -> ReferencePath:
    if not mapping.source_handle:
        return ReferencePath(ref=mapping.source_ref, path=(), expression=mapping.source_ref)
    expression = f"{mapping.source_ref}.{mapping.source_handle}"
    try:
        path = parse_expression(expression).path
    except ValueError:
        # handles are port names first, paths second
        path = (mapping.source_handle,)
    return ReferencePath(ref=mapping.source_ref, path=path, expression=expression)


class WorkflowTopology:
    """Dependency structure of one workflow definition.

    Attributes:
        definition: The definition this topology describes.
        graph: Dependency graph, edges point from producer to consumer.
        entrypoint_ref: Ref the run starts from.
        fingerprint: Canonical hash of the definition.
    """

    def __init__(self, definition: WorkflowDefinition, settings: Settings | None = None) -> None:
        self.definition = definition
        self.settings = settings or get_settings()
        self.entrypoint_ref = definition.entrypoint.ref
        self.fingerprint = definition_fingerprint(definition)

        self._actions: dict[str, Action] = {}
        self.duplicate_refs: list[str] = []
        for action in definition.actions:
            if action.ref in self._actions:
                if action.ref not in self.duplicate_refs:
                    self.duplicate_refs.append(action.ref)
                continue
            self._actions[action.ref] = action

        self._nodes = {ref: self._resolve_node(ref) for ref in self._actions}
        self._group_members: dict[str, list[str]] = {}
        for ref, node in self._nodes.items():
            if node.group_id is not None:
                self._group_members.setdefault(node.group_id, []).append(ref)

        known = self._actions.keys()
        self._params: dict[str, dict[str, ParamValue]] = {}
        self._direct: dict[str, list[str]] = {}
        self.dangling_references: dict[str, list[str]] = {}
        for ref, action in self._actions.items():
            params = {name: parse_value(raw, known) for name, raw in action.params.items()}
            for target, mapping in action.input_mappings.items():
                params[target] = ReferenceValue(_mapping_reference(mapping))
            self._params[ref] = params

            direct: dict[str, None] = {}
            for reference in collect_references(params):
                direct[reference.ref] = None
            for dependency in action.depends_on:
                direct[dependency] = None
            self._direct[ref] = list(direct)

            missing = [dependency for dependency in direct if dependency not in known]
            if missing:
                self.dangling_references[ref] = missing

        self._parts = {ref: self._build_parts(ref) for ref in self._actions}
        self.graph = Graph[str]()
        for ref in self._actions:
            self.graph.add_node(ref)
        for ref in self._actions:
            for part in self._parts[ref]:
                for dependency in part.refs:
                    self.graph.add_edge(dependency, ref)

        self._scheduled = self._compute_scheduled()

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _resolve_node(self, ref: str) -> ResolvedNode:
        metadata = self.definition.metadata_for(ref)
        join_strategy = metadata.join_strategy or JoinStrategy(self.settings.DEFAULT_JOIN_STRATEGY)
        return ResolvedNode(
            stream_id=metadata.stream_id or metadata.group_id or ref,
            group_id=metadata.group_id,
            join_strategy=join_strategy,
        )

    def _build_parts(self, ref: str) -> list[DependencyPart]:
        own_group = self._nodes[ref].group_id
        parts: list[DependencyPart] = []
        seen_groups: set[str] = set()
        seen_refs: set[str] = set()

        for dependency in self._direct[ref]:
            if dependency not in self._actions:
                continue
            group_id = self._nodes[dependency].group_id
            if group_id is not None and group_id != own_group:
                if group_id in seen_groups:
                    continue
                seen_groups.add(group_id)
                members = tuple(self._group_members[group_id])
                seen_refs.update(members)
                parts.append(DependencyPart(group_id=group_id, refs=members))
            elif dependency not in seen_refs:
                seen_refs.add(dependency)
                parts.append(DependencyPart(group_id=None, refs=(dependency,)))

        return parts

    def _compute_scheduled(self) -> set[str]:
        if self.entrypoint_ref not in self.graph:
            return set()
        reachable = GraphAlgorithms.find_reachable_from(self.graph, [self.entrypoint_ref])
        return reachable | GraphAlgorithms.find_ancestors(self.graph, reachable)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def refs(self) -> list[str]:
        """Unique refs in definition order."""
        return list(self._actions)

    @property
    def actions(self) -> list[Action]:
        """Unique actions in definition order."""
        return list(self._actions.values())

    @property
    def scheduled(self) -> list[str]:
        """Refs a run schedules, in definition order."""
        return [ref for ref in self._actions if ref in self._scheduled]

    @property
    def unreachable(self) -> list[str]:
        """Refs a run never schedules, in definition order."""
        return [ref for ref in self._actions if ref not in self._scheduled]

    @property
    def groups(self) -> dict[str, list[str]]:
        """Group id to member refs, in definition order."""
        return {group: list(members) for group, members in self._group_members.items()}

    def is_scheduled(self, ref: str) -> bool:
        return ref in self._scheduled

    def action(self, ref: str) -> Action:
        """Action for a ref.

        Raises:
            KeyError: If the ref is unknown.
        """
        return self._actions[ref]

    def node(self, ref: str) -> ResolvedNode:
        """Resolved stream/group metadata for a ref."""
        return self._nodes[ref]

    def params(self, ref: str) -> dict[str, ParamValue]:
        """Parsed params of an action, input mappings included."""
        return self._params[ref]

    def direct_dependencies(self, ref: str) -> list[str]:
        """Refs named by the action itself, known or not."""
        return list(self._direct[ref])

    def dependencies(self, ref: str) -> list[str]:
        """Every ref the action waits on, group-implied edges included.

        Ordered by definition order, independent of how the action lists
        them.
        """
        return self.graph.sort_by_position(self.graph.get_predecessors(ref))

    def dependency_parts(self, ref: str) -> list[DependencyPart]:
        """Gate inputs of an action: upstream groups and singletons."""
        return list(self._parts[ref])

    def dependents(self, ref: str) -> list[str]:
        """Refs that wait on this action, in definition order."""
        return self.graph.sort_by_position(self.graph.get_successors(ref))

    def group_members(self, group_id: str) -> list[str]:
        return list(self._group_members.get(group_id, ()))

    def __contains__(self, ref: object) -> bool:
        return ref in self._actions

    def __repr__(self) -> str:
        return (
            f"WorkflowTopology(actions={len(self._actions)}, "
            f"scheduled={len(self._scheduled)}, groups={len(self._group_members)})"
        )


__all__ = [
    "DependencyPart",
    "ResolvedNode",
    "WorkflowTopology",
    "definition_fingerprint",
]
