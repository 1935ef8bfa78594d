"""Core scheduler configuration and utilities.

This package contains core functionality including:
- Configuration management (config.py)
- Logging setup (logging.py)
"""

from actiongraph.core.config import Settings, get_settings, settings
from actiongraph.core.logging import LogContext, get_logger, setup_logging

__all__ = [
    "LogContext",
    "Settings",
    "get_logger",
    "get_settings",
    "settings",
    "setup_logging",
]
