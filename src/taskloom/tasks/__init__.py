"""Task graph model, decomposition and the task planner."""

from taskloom.tasks.decomposition import (
    DecompositionRequest,
    LLMDecomposer,
    SubtaskSpec,
    TaskDecomposer,
    extract_json_array,
    parse_subtasks,
)
from taskloom.tasks.models import DEFAULT_PRIORITY, Task, TaskPlan, TaskStatus
from taskloom.tasks.planner import BLOCKED_REASON, PlanningOptions, TaskPlanner

__all__ = [
    # Model
    "DEFAULT_PRIORITY",
    "Task",
    "TaskPlan",
    "TaskStatus",
    # Decomposition
    "DecompositionRequest",
    "LLMDecomposer",
    "SubtaskSpec",
    "TaskDecomposer",
    "extract_json_array",
    "parse_subtasks",
    # Planner
    "BLOCKED_REASON",
    "PlanningOptions",
    "TaskPlanner",
]
