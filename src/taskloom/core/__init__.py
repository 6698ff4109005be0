"""Taskloom core module - shared types, errors, and security helpers."""

from taskloom.core.errors import (
    ConfigError,
    DecompositionError,
    ExecutionError,
    ExecutorConfigurationError,
    NotFoundError,
    PlanNotFoundError,
    ProviderError,
    TaskloomError,
    TaskNotFoundError,
    ValidationError,
)
from taskloom.core.security import InputValidator, mask_api_key, sanitize_for_logging
from taskloom.core.types import (
    CapabilityName,
    EventPayload,
    ExecutorId,
    PlanId,
    Result,
    TaskId,
)

__all__ = [
    # Types
    "Result",
    "TaskId",
    "PlanId",
    "ExecutorId",
    "CapabilityName",
    "EventPayload",
    # Errors
    "TaskloomError",
    "NotFoundError",
    "PlanNotFoundError",
    "TaskNotFoundError",
    "ConfigError",
    "ExecutorConfigurationError",
    "ProviderError",
    "ValidationError",
    "DecompositionError",
    "ExecutionError",
    # Security utilities
    "InputValidator",
    "mask_api_key",
    "sanitize_for_logging",
]
