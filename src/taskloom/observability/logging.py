"""Structured logging configuration for Taskloom.

structlog is configured once per process with a human-readable console
renderer (dev) or JSON (prod). The mode comes from ``TASKLOOM_LOG_MODE`` or an
explicit LoggingConfig.

Standard log keys:
- plan_id: Task plan identifier (bound for the duration of execute_plan)
- task_id: Task identifier
- executor_id: Executor that a task was routed to
- capability: Capability used for routing
- attempt: Execution attempt number (1-based)

Event naming convention:
- dot.notation, domain.entity.verb_past_tense
  (e.g. "planner.plan.created", "discovery.agent.selected", "executor.task.failed")

Usage:
    from taskloom.observability import configure_logging, get_logger, bind_context

    configure_logging(LoggingConfig(mode=LogMode.DEV))
    log = get_logger(__name__)
    bind_context(plan_id=plan.id)
    log.info("executor.task.started", task_id=task.id, attempt=1)
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from functools import partial
import logging
from logging.handlers import TimedRotatingFileHandler
import os
from pathlib import Path
import sys
from typing import Any

from pydantic import BaseModel, Field
import structlog

from taskloom.core.security import is_sensitive_field, is_sensitive_value, mask_api_key

LOG_MODE_ENV_VAR = "TASKLOOM_LOG_MODE"

_STRUCTLOG_KEYS = frozenset({"event", "level", "timestamp", "filename", "lineno"})


class LogMode(StrEnum):
    """Logging output mode."""

    DEV = "dev"
    PROD = "prod"


class LoggingConfig(BaseModel, frozen=True):
    """Configuration for structured logging.

    Attributes:
        mode: Output mode (dev for human-readable, prod for JSON).
        log_level: Minimum log level to output.
        log_dir: Directory for log files. Defaults to ~/.taskloom/logs/.
        max_log_days: Days of rotated log files to keep.
        enable_file_logging: Whether to also write JSON lines to a file.
    """

    mode: LogMode = Field(default=LogMode.DEV)
    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".taskloom" / "logs")
    max_log_days: int = Field(default=7, ge=1, le=365)
    enable_file_logging: bool = Field(default=False)


_configured: bool = False
_current_config: LoggingConfig | None = None
_console_logging_enabled: bool = True


def _get_mode_from_env() -> LogMode:
    """Read the mode from TASKLOOM_LOG_MODE; anything but "prod" means dev."""
    if os.environ.get(LOG_MODE_ENV_VAR, "dev").lower() == "prod":
        return LogMode.PROD
    return LogMode.DEV


def _level_number(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _open_log_file(config: LoggingConfig) -> TimedRotatingFileHandler | None:
    """Daily-rotated ``taskloom.log`` under ``log_dir``; None when file logging is off."""
    if not config.enable_file_logging:
        return None

    config.log_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        config.log_dir / "taskloom.log",
        when="midnight",
        backupCount=config.max_log_days,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(_level_number(config.log_level))
    return handler


def _mask_value(key: str, value: Any) -> Any:
    if is_sensitive_field(key):
        return "<REDACTED>"
    if isinstance(value, str) and is_sensitive_value(value):
        return mask_api_key(value)
    if isinstance(value, dict):
        return {k: _mask_value(k, v) for k, v in value.items()}
    return value


def _mask_sensitive_data(
    _logger: Any,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that redacts secrets before rendering."""
    return {
        key: value if key in _STRUCTLOG_KEYS else _mask_value(key, value)
        for key, value in event_dict.items()
    }


_SHARED_PROCESSORS: tuple[Any, ...] = (
    structlog.contextvars.merge_contextvars,
    _mask_sensitive_data,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.CallsiteParameterAdder(
        parameters=[
            structlog.processors.CallsiteParameter.FILENAME,
            structlog.processors.CallsiteParameter.LINENO,
        ]
    ),
    structlog.processors.format_exc_info,
)


def _renderer(mode: LogMode) -> Any:
    if mode == LogMode.PROD:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def set_console_logging(enabled: bool) -> None:
    """Enable or disable log output on stderr (the CLI turns it off for Rich output)."""
    global _console_logging_enabled
    _console_logging_enabled = enabled


def is_console_logging_enabled() -> bool:
    """Return True if log lines are echoed to stderr."""
    return _console_logging_enabled


# structlog method name -> stdlib level of the mirrored file record
_METHOD_LEVELS = {
    "msg": logging.INFO,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "exception": logging.ERROR,
    "critical": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}


class _TeeLogger:
    """Final structlog logger: rendered lines go to stderr and the log file."""

    def __init__(self, file_handler: TimedRotatingFileHandler | None) -> None:
        self._file_handler = file_handler

    def _write(self, level: int, message: str) -> None:
        if _console_logging_enabled:
            print(message, file=sys.stderr)
        if self._file_handler is not None:
            self._file_handler.handle(
                logging.makeLogRecord({"name": "taskloom", "levelno": level, "msg": message})
            )

    def __call__(self, message: str) -> None:
        self._write(logging.INFO, message)

    def __getattr__(self, name: str) -> Callable[[str], None]:
        level = _METHOD_LEVELS.get(name)
        if level is None:
            raise AttributeError(name)
        return partial(self._write, level)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog for the application.

    Call once at startup. Reconfiguring replaces the previous file handler.

    Args:
        config: Logging configuration. If None, defaults are used with the
            mode taken from TASKLOOM_LOG_MODE.
    """
    global _configured, _current_config

    config = config or LoggingConfig(mode=_get_mode_from_env())
    _current_config = config
    level = _level_number(config.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    file_handler = _open_log_file(config)
    if file_handler is not None:
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, _renderer(config.mode)],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=lambda *_: _TeeLogger(file_handler),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger, configuring logging with defaults on first use."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_context(**kwargs: Any) -> None:
    """Bind context variables that follow the current async context.

    Never bind secrets here; they would be attached to every entry.

    Example:
        bind_context(plan_id="plan_123")
        log.info("executor.batch.dispatched")  # includes plan_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove context variables from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


def get_current_config() -> LoggingConfig | None:
    """Return the active LoggingConfig, or None if not configured."""
    return _current_config


def is_configured() -> bool:
    """Return True once configure_logging has run."""
    return _configured


def reset_logging() -> None:
    """Reset module state and structlog defaults. Intended for tests."""
    global _configured, _current_config
    _configured = False
    _current_config = None
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
