"""Scheduler configuration using Pydantic Settings.

Environment variables are loaded from .env files and system environment.
All sensitive values should be provided via environment variables.
"""

from functools import lru_cache
from typing import Any

from pydantic import RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Scheduler settings.

    All settings can be overridden via environment variables.
    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "ActionGraph Scheduler"
    DEBUG: bool = False

    # Validation cache
    REDIS_URL: RedisDsn | None = None
    VALIDATION_CACHE_TTL: int = 300  # 5 minutes

    # Graph limits
    MAX_ACTIONS: int = 1000

    # Entrypoint handling
    GRAPH_INPUT_COMPONENT_ID: str = "core.workflow.entrypoint"
    RUNTIME_INPUTS_KEY: str = "__runtimeData"

    # Scheduling
    DEFAULT_JOIN_STRATEGY: str = "all"

    # Action runner
    DEFAULT_ACTION_TIMEOUT_SECONDS: float = 600.0
    RUNNER_MAX_CONCURRENCY: int | None = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None  # No file handler unless set
    LOG_JSON_FORMAT: bool = True  # Use JSON format for file logs
    LOG_SENSITIVE_FILTER: bool = True  # Filter sensitive data from logs

    @field_validator("DEFAULT_JOIN_STRATEGY", mode="before")
    @classmethod
    def normalize_join_strategy(cls, v: Any) -> str:
        """Lower-case the default join strategy and reject unknown values."""
        value = str(v).strip().lower()
        if value not in {"all", "any", "race"}:
            raise ValueError(f"Unknown join strategy: {v}")
        return value

    @field_validator("RUNNER_MAX_CONCURRENCY", mode="before")
    @classmethod
    def parse_max_concurrency(cls, v: Any) -> int | None:
        """Treat empty strings and non-positive values as unbounded."""
        if v in (None, ""):
            return None
        value = int(v)
        return value if value > 0 else None


@lru_cache
def get_settings() -> Settings:
    """Get cached scheduler settings.

    Settings are cached after first load for performance.
    """
    return Settings()


# Global settings instance
settings = get_settings()
