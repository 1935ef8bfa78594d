"""ActionGraph Scheduler.

Join-aware DAG scheduler for component workflows.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
