"""Plan execution: event bus and task executor."""

from taskloom.execution.events import (
    EventBus,
    EventHandler,
    ExecutionEvent,
    ExecutionEventType,
)
from taskloom.execution.executor import (
    ExecutionOptions,
    PlanExecutionResult,
    TaskExecutionResult,
    TaskExecutor,
)

__all__ = [
    "EventBus",
    "EventHandler",
    "ExecutionEvent",
    "ExecutionEventType",
    "ExecutionOptions",
    "PlanExecutionResult",
    "TaskExecutionResult",
    "TaskExecutor",
]
