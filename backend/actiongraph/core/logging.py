"""Structured logging configuration for the ActionGraph scheduler.

This module provides the logging system used by the scheduler and its
collaborators:
- JSON structured logging for production environments
- Colored console output for development
- Optional rotating file handler (10MB max, 5 backups)
- Sensitive data filtering, since action parameters routinely carry
  credentials for the tools they drive
- Run context tracking (run_id, action_ref) for correlating log lines
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Callable
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, ClassVar

from actiongraph.core.config import settings


class LogLevel(str, Enum):
    """Log level enumeration for type-safe log level configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Merge scope context (LogContext) with per-call ``extra`` context."""
    scoped = getattr(record, "scope_context", None) or {}
    explicit = getattr(record, "context", None) or {}
    return {**scoped, **explicit}


def _secret_regex(key: str) -> re.Pattern[str]:
    # "Bearer <token>" has no separator
    separator = r"[:=\s]" if key == "bearer" else r"[:=]"
    return re.compile(rf"{key}{separator}\s*[\"']?[^\s\"',}}]+", re.IGNORECASE)


class SensitiveDataFilter(logging.Filter):
    """Filter to prevent sensitive data from appearing in logs.

    Redacts values that follow well-known secret keys (passwords, tokens,
    API keys) in the message and in string arguments before any handler
    writes the record.

    Examples:
        >>> logger = logging.getLogger("actiongraph")
        >>> logger.addFilter(SensitiveDataFilter())
        >>> logger.info("Scanner api_key=abc123")
        # Logs: "Scanner api_key: [REDACTED]"
    """

    SENSITIVE_PATTERNS: ClassVar[list[str]] = [
        "bearer",
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
        "private_key",
    ]

    _COMPILED: ClassVar[list[tuple[str, re.Pattern[str]]]] = [
        (pattern, _secret_regex(pattern)) for pattern in SENSITIVE_PATTERNS
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data from a log record.

        Args:
            record: Log record to filter

        Returns:
            True (the record is always emitted, only redacted)
        """
        record.msg = self.redact(str(record.msg))

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True

    @classmethod
    def redact(cls, text: str) -> str:
        """Redact `key: value` / `key=value` secrets from text."""
        for pattern, regex in cls._COMPILED:
            text = regex.sub(f"{pattern}: [REDACTED]", text)
        return text


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Format:
        {
            "timestamp": "2025-01-12T10:30:45.123Z",
            "level": "INFO",
            "logger": "actiongraph.services.workflow.scheduler",
            "message": "Action 'scan' succeeded",
            "service": "ActionGraphScheduler",
            "context": {"run_id": "run-1", "action_ref": "scan"}
        }
    """

    def __init__(self, service_name: str = "ActionGraphScheduler") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        context = record_context(record)
        if context:
            log_entry["context"] = context

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if record.levelno >= logging.ERROR:
            log_entry["source"] = {
                "function": record.funcName,
                "line": record.lineno,
                "file": record.pathname,
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development environments."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[41m",  # Red background
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors and inline context."""
        levelname = record.levelname
        color = self.COLORS.get(levelname, self.RESET)
        record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            formatted = super().format(record)
        finally:
            record.levelname = levelname

        context = record_context(record)
        if context:
            formatted = f"{formatted} | Context: {json.dumps(context, default=str)}"
        return formatted


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    service_name: str = "ActionGraphScheduler",
    enable_json: bool | None = None,
    enable_console: bool = True,
) -> logging.Logger:
    """Configure the ``actiongraph`` logger hierarchy.

    Args:
        log_level: Logging level name. Defaults to settings.LOG_LEVEL
        log_file: Path to a log file. Defaults to settings.LOG_FILE; no file
                  handler is installed when neither is set
        service_name: Name of the service for log metadata
        enable_json: JSON formatting for the file handler.
                     Defaults to settings.LOG_JSON_FORMAT
        enable_console: Enable console output handler

    Returns:
        The configured ``actiongraph`` logger

    Examples:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Scheduler ready", extra={"context": {"runner": "local"}})
    """
    if log_level is None:
        log_level = settings.LOG_LEVEL
    if log_file is None:
        log_file = settings.LOG_FILE
    if enable_json is None:
        enable_json = settings.LOG_JSON_FORMAT

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger("actiongraph")
    logger.setLevel(level)
    logger.handlers.clear()

    sensitive_filter = SensitiveDataFilter() if settings.LOG_SENSITIVE_FILTER else None

    if log_file:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(log_file_path),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        if enable_json:
            file_handler.setFormatter(JSONFormatter(service_name=service_name))
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        if sensitive_filter is not None:
            file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        if settings.DEBUG:
            console_handler.setFormatter(ColoredConsoleFormatter())
        else:
            console_handler.setFormatter(JSONFormatter(service_name=service_name))
        if sensitive_filter is not None:
            console_handler.addFilter(sensitive_filter)
        logger.addHandler(console_handler)

    logger.debug(
        f"Logging initialized - Level: {log_level}, File: {log_file}",
        extra={"context": {"log_level": log_level, "log_file": log_file}},
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name.

    Examples:
        >>> from actiongraph.core.logging import get_logger
        >>> logger = get_logger(__name__)
    """
    return logging.getLogger(name)


# Scope context follows asyncio tasks, so concurrent runs never mix context
_scope_context: ContextVar[dict[str, Any]] = ContextVar("log_scope_context", default={})
_base_record_factory: Callable[..., logging.LogRecord] | None = None


def _scoped_record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    assert _base_record_factory is not None
    record = _base_record_factory(*args, **kwargs)
    scope = _scope_context.get()
    if scope:
        record.scope_context = dict(scope)
    return record


def _install_record_factory() -> None:
    global _base_record_factory
    current = logging.getLogRecordFactory()
    if current is not _scoped_record_factory:
        _base_record_factory = current
        logging.setLogRecordFactory(_scoped_record_factory)


class LogContext:
    """Attach structured context to every record created inside a scope.

    The scheduler wraps a run in ``LogContext(run_id=..., workflow_id=...)``
    so that records from the resolver, the gate and the runner all carry the
    run they belong to. Scopes nest, and tasks started inside a scope
    inherit it.

    Examples:
        >>> with LogContext(run_id="run-1"):
        ...     logger.info("Dispatching 'scan'")
    """

    def __init__(self, **context: Any) -> None:
        self.context = context
        self._token: Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        _install_record_factory()
        self._token = _scope_context.set({**_scope_context.get(), **self.context})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _scope_context.reset(self._token)
            self._token = None


__all__ = [
    "ColoredConsoleFormatter",
    "JSONFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataFilter",
    "get_logger",
    "record_context",
    "setup_logging",
]
