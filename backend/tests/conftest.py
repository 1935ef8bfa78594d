"""pytest configuration and shared fixtures.

This module provides fixtures used across the test suite: isolated settings
that ignore any local .env file, and a reset of the module-level singletons
(validation cache, component registry) between tests.
"""

from collections.abc import Iterator

import pytest

from actiongraph.core.config import Settings
from actiongraph.services.workflow import runner as runner_module
from actiongraph.services.workflow.cache import reset_validation_cache

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")


# =============================================================================
# SETTINGS FIXTURES
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings built from defaults only (no .env, no REDIS_URL)."""
    return Settings(_env_file=None, REDIS_URL=None)


@pytest.fixture(autouse=True)
def reset_singletons() -> Iterator[None]:
    """Drop module-level singletons so tests never share cached state."""
    reset_validation_cache()
    runner_module._registry = None
    yield
    reset_validation_cache()
    runner_module._registry = None
