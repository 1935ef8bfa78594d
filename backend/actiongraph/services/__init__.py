"""Scheduler services.

This package contains the workflow validation and execution services.
"""

from actiongraph.services.workflow import DAGValidator, WorkflowScheduler

__all__ = [
    "DAGValidator",
    "WorkflowScheduler",
]
