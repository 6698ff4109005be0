"""Error hierarchy for Taskloom.

These exceptions cover programming errors and the engine's typed failures.
Expected collaborator failures (LLM errors, unparsable decompositions) are
carried as error values inside Result instead of being raised.

Exception Hierarchy:
    TaskloomError (base)
    ├── NotFoundError                 - unknown plan/task (fatal, never retried)
    │   ├── PlanNotFoundError
    │   └── TaskNotFoundError
    ├── ConfigError                   - configuration and wiring problems
    │   └── ExecutorConfigurationError - task assigned to a missing executor
    ├── ProviderError                 - LLM provider failures
    ├── ValidationError               - invalid data or state transitions
    │   └── DecompositionError        - unusable decomposition output
    └── ExecutionError                - an executor could not produce output
"""

from __future__ import annotations

from typing import Any


class TaskloomError(Exception):
    """Base exception for all Taskloom errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dict with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class NotFoundError(TaskloomError):
    """An entity referenced by id does not exist."""


class PlanNotFoundError(NotFoundError):
    """Raised when a plan id is unknown to the planner.

    Attributes:
        plan_id: The id that was looked up.
    """

    def __init__(self, plan_id: str) -> None:
        super().__init__(f"Task plan not found: {plan_id}")
        self.plan_id = plan_id


class TaskNotFoundError(NotFoundError):
    """Raised when a task id is not part of the given plan.

    Attributes:
        plan_id: The plan that was searched.
        task_id: The id that was looked up.
    """

    def __init__(self, plan_id: str, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}", details={"plan_id": plan_id})
        self.plan_id = plan_id
        self.task_id = task_id


class ConfigError(TaskloomError):
    """Error from configuration operations.

    Attributes:
        config_key: The configuration key that caused the error.
        config_file: Path to the config file if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        config_file: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


class ExecutorConfigurationError(ConfigError):
    """A task cannot run because its executor assignment does not resolve.

    Raised when a task has no assigned executor or is assigned to an id the
    registry does not know. This is a wiring problem and is never retried.

    Attributes:
        task_id: The task being executed.
        executor_id: The unresolved executor id (None when unassigned).
    """

    def __init__(self, message: str, *, task_id: str, executor_id: str | None) -> None:
        super().__init__(
            message,
            config_key="assigned_to",
            details={"task_id": task_id, "executor_id": executor_id},
        )
        self.task_id = task_id
        self.executor_id = executor_id


class ProviderError(TaskloomError):
    """Error from LLM provider operations.

    Attributes:
        provider: Name of the provider (e.g., "openai", "anthropic").
        status_code: HTTP status code if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.provider = provider
        self.status_code = status_code

    @classmethod
    def from_exception(cls, exc: Exception, *, provider: str | None = None) -> ProviderError:
        """Create a ProviderError from a provider exception, chaining the cause."""
        status_code = getattr(exc, "status_code", None)
        error = cls(
            str(exc),
            provider=provider,
            status_code=status_code,
            details={"original_exception": type(exc).__name__},
        )
        error.__cause__ = exc
        return error


class ValidationError(TaskloomError):
    """Input data or a requested state change failed validation.

    Attributes:
        field: The field that failed validation.
        value: The invalid value if safe to include.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field
        self.value = value

    def __str__(self) -> str:
        base = self.message
        if self.field:
            base = f"{base} (field: {self.field})"
        if self.details:
            base = f"{base} (details: {self.details})"
        return base


class DecompositionError(ValidationError):
    """The decomposer returned output that cannot be turned into subtasks.

    The planner recovers from this locally by keeping the task as a leaf.

    Attributes:
        task_id: The task whose decomposition failed.
        error_type: Short machine-readable category (e.g. "parse_failure").
    """

    def __init__(
        self,
        message: str,
        *,
        task_id: str | None = None,
        error_type: str = "decomposition_error",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, field=error_type, value=task_id, details=details)
        self.task_id = task_id
        self.error_type = error_type


class ExecutionError(TaskloomError):
    """An executor failed to produce output for a task.

    Attributes:
        executor_id: The executor that failed.
    """

    def __init__(
        self,
        message: str,
        *,
        executor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.executor_id = executor_id
