"""DAG Validation Service for workflow definitions.

This module provides the DAGValidator service for structural validation of
workflow definitions: size limits, duplicate refs, entrypoint checks,
dangling references and cycle detection (join edges included). Validation
raises on the first blocking problem, always before any action dispatches.
"""

import logging

from actiongraph.core.config import Settings, get_settings
from actiongraph.schemas.validation import TopologyLevel, TopologyResult
from actiongraph.schemas.workflow import WorkflowDefinition
from actiongraph.services.workflow.algorithms import GraphAlgorithms
from actiongraph.services.workflow.cache import ValidationCache
from actiongraph.services.workflow.exceptions import (
    CycleError,
    DanglingReferenceError,
    DuplicateActionError,
    EntrypointDependencyError,
    GraphTooLargeError,
    UnknownEntrypointError,
)
from actiongraph.services.workflow.topology import WorkflowTopology

logger = logging.getLogger(__name__)


class DAGValidator:
    """Structural validator for workflow definitions.

    Stateless apart from the optional validation cache, so one instance can
    serve any number of definitions and runs.

    Example:
        >>> validator = DAGValidator()
        >>> topology = validator.validate(definition)
        >>> topology.scheduled
        ['start', 'scan', 'report']
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: ValidationCache | None = None,
    ) -> None:
        """Initialize the validator.

        Args:
            settings: Scheduler settings (global settings if None).
            cache: Validation cache; None disables caching.
        """
        self.settings = settings or get_settings()
        self.cache = cache

    def validate(self, definition: WorkflowDefinition) -> WorkflowTopology:
        """Validate a definition and return its topology.

        Args:
            definition: Definition to validate.

        Returns:
            WorkflowTopology of the valid definition.

        Raises:
            GraphTooLargeError: More actions than MAX_ACTIONS.
            DuplicateActionError: Two actions share a ref.
            UnknownEntrypointError: Entrypoint ref is not an action.
            DanglingReferenceError: Params or depends_on name unknown refs.
            EntrypointDependencyError: The entrypoint has dependencies.
            CycleError: The dependency graph has a cycle.
        """
        action_count = len(definition.actions)
        if action_count > self.settings.MAX_ACTIONS:
            raise GraphTooLargeError(current=action_count, limit=self.settings.MAX_ACTIONS)

        topology = WorkflowTopology(definition, self.settings)

        if topology.duplicate_refs:
            raise DuplicateActionError(topology.duplicate_refs)

        if topology.entrypoint_ref not in topology:
            raise UnknownEntrypointError(topology.entrypoint_ref)

        if topology.dangling_references:
            raise DanglingReferenceError(topology.dangling_references)

        entry_dependencies = topology.dependencies(topology.entrypoint_ref)
        if entry_dependencies:
            raise EntrypointDependencyError(topology.entrypoint_ref, entry_dependencies)

        cycle = GraphAlgorithms.detect_cycle(topology.graph)
        if cycle:
            raise CycleError(cycle)

        unreachable = topology.unreachable
        if unreachable:
            logger.warning(
                f"Actions not reachable from entrypoint '{topology.entrypoint_ref}' "
                f"will not be scheduled: {', '.join(unreachable)}",
                extra={"context": {"unreachable": unreachable}},
            )

        return topology

    def get_topology(self, definition: WorkflowDefinition) -> TopologyResult:
        """Validate a definition and summarize its execution levels.

        Raises:
            DAGValidationError: If the definition is invalid.
        """
        return self.summarize(self.validate(definition))

    def summarize(self, topology: WorkflowTopology) -> TopologyResult:
        """Build the cacheable topology summary of a validated definition."""
        levels_data = GraphAlgorithms.topological_sort_levels(topology.graph) or []
        return TopologyResult(
            fingerprint=topology.fingerprint,
            levels=[
                TopologyLevel(level=i, refs=level_refs)
                for i, level_refs in enumerate(levels_data)
            ],
            scheduled=topology.scheduled,
            unreachable=topology.unreachable,
            max_parallelism=max((len(level) for level in levels_data), default=0),
        )

    async def validate_cached(self, definition: WorkflowDefinition) -> WorkflowTopology:
        """Validate a definition, skipping structural checks on a cache hit.

        Only valid definitions are ever stored, so a hit proves validity of
        an identical definition.
        """
        if self.cache is None:
            return self.validate(definition)

        topology = WorkflowTopology(definition, self.settings)
        cached = await self.cache.get(topology.fingerprint)
        if cached is not None:
            logger.debug(f"Validation cache hit for definition {topology.fingerprint[:12]}")
            return topology

        topology = self.validate(definition)
        await self.cache.set(topology.fingerprint, self.summarize(topology).model_dump(mode="json"))
        return topology

    async def get_cached_topology(self, definition: WorkflowDefinition) -> TopologyResult:
        """Topology summary, served from the cache when available."""
        if self.cache is not None:
            fingerprint = WorkflowTopology(definition, self.settings).fingerprint
            cached = await self.cache.get(fingerprint)
            if cached is not None:
                return TopologyResult.model_validate(cached)
        topology = await self.validate_cached(definition)
        return self.summarize(topology)


__all__ = ["DAGValidator"]
