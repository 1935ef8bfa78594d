"""Workflow validation and execution package.

This package provides definition validation and the DAG scheduler for
workflow definitions.

Components:
Validation:
- Graph: Ordered directed graph data structure
- GraphAlgorithms: Graph algorithm collection (cycle detection, topology)
- WorkflowTopology: Dependencies, groups and scheduled set of a definition
- DAGValidator: Structural validation service
- ValidationCache: Redis/in-memory cache of validated topologies

Execution:
- WorkflowScheduler: Join-aware DAG scheduler
- ParameterResolver: Resolves reference expressions in action params
- FailurePolicy: Failure classification, retries and run summaries
- ActionRunner / RegistryActionRunner: Action execution contract
- RunLifecycleHooks: Run start/finalize callbacks

Example:
    >>> from actiongraph.services.workflow import RegistryActionRunner, WorkflowScheduler
    >>> scheduler = WorkflowScheduler(definition, RegistryActionRunner())
    >>> result = await scheduler.run("run-1", "wf-1", inputs={"host": "10.0.0.1"})
"""

# ============================================================================
# Validation Components
# ============================================================================

from actiongraph.services.workflow.algorithms import GraphAlgorithms
from actiongraph.services.workflow.cache import ValidationCache, get_validation_cache
from actiongraph.services.workflow.exceptions import (
    CycleError,
    DAGValidationError,
    DanglingReferenceError,
    DuplicateActionError,
    EntrypointDependencyError,
    GraphTooLargeError,
    UnknownEntrypointError,
)
from actiongraph.services.workflow.graph import Graph
from actiongraph.services.workflow.topology import WorkflowTopology
from actiongraph.services.workflow.validator import DAGValidator

# ============================================================================
# Execution Components
# ============================================================================

from actiongraph.services.workflow.exceptions import (
    ComponentFailure,
    ComponentNotFoundError,
    DeadlockError,
    ExecutionError,
    IllegalTransitionError,
    InfrastructureFailure,
    ReplayDivergenceError,
    ResultOverwriteError,
    RunAlreadyActiveError,
    UnresolvedProducerError,
    UnresolvedReferenceWarning,
)
from actiongraph.services.workflow.hooks import NullRunHooks, RunLifecycleHooks
from actiongraph.services.workflow.joins import evaluate_gate
from actiongraph.services.workflow.policy import FailurePolicy
from actiongraph.services.workflow.resolver import ParameterResolver, ResolvedParams
from actiongraph.services.workflow.runner import (
    ActionRunner,
    ComponentRegistry,
    RegistryActionRunner,
    get_registry,
)
from actiongraph.services.workflow.scheduler import WorkflowScheduler

__all__ = [
    # ============================================================================
    # Validation
    # ============================================================================
    # Data structures
    "Graph",
    "WorkflowTopology",
    # Algorithms
    "GraphAlgorithms",
    # Validator
    "DAGValidator",
    "ValidationCache",
    "get_validation_cache",
    # Validation Exceptions
    "CycleError",
    "DAGValidationError",
    "DanglingReferenceError",
    "DuplicateActionError",
    "EntrypointDependencyError",
    "GraphTooLargeError",
    "UnknownEntrypointError",
    # ============================================================================
    # Execution
    # ============================================================================
    # Scheduler
    "WorkflowScheduler",
    "ParameterResolver",
    "ResolvedParams",
    "FailurePolicy",
    "evaluate_gate",
    # Collaborators
    "ActionRunner",
    "ComponentRegistry",
    "RegistryActionRunner",
    "get_registry",
    "NullRunHooks",
    "RunLifecycleHooks",
    # Execution Exceptions
    "ComponentFailure",
    "ComponentNotFoundError",
    "DeadlockError",
    "ExecutionError",
    "IllegalTransitionError",
    "InfrastructureFailure",
    "ReplayDivergenceError",
    "ResultOverwriteError",
    "RunAlreadyActiveError",
    "UnresolvedProducerError",
    "UnresolvedReferenceWarning",
]
