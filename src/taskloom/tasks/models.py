"""Task graph data model.

A TaskPlan owns its tasks in an id-indexed arena. Parent/child links form a
tree (``parent_task_id`` / ``subtask_ids``); ``dependencies`` form a DAG
whose edges only connect siblings. Only leaves are executed; composite tasks
finish when their children do.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

DEFAULT_PRIORITY = 5


def _now() -> datetime:
    return datetime.now(UTC)


class TaskStatus(StrEnum):
    """Lifecycle of a task: pending -> in-progress -> completed | failed."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


@dataclass(slots=True)
class Task:
    """A unit of work inside a plan.

    Attributes:
        name: Short name, unique among siblings when produced by decomposition.
        description: What has to be done.
        id: Unique id within the plan.
        status: Current lifecycle state.
        priority: Higher runs first among ready tasks.
        dependencies: Ids of sibling tasks that must complete first.
        parent_task_id: Id of the composite task this one refines.
        subtask_ids: Children, in decomposition order.
        required_capabilities: Capabilities used to route the task, first one first.
        assigned_to: Executor id; may change while the task is pending.
        result: Output, set once on completion.
        failure_reason: Set once on failure.
        metadata: Free-form data (decomposition depth, executor details, ...).
    """

    name: str
    description: str
    id: str = field(default_factory=lambda: f"task_{uuid4().hex[:12]}")
    status: TaskStatus = TaskStatus.PENDING
    priority: int = DEFAULT_PRIORITY
    dependencies: list[str] = field(default_factory=list)
    parent_task_id: str | None = None
    subtask_ids: list[str] = field(default_factory=list)
    required_capabilities: list[str] = field(default_factory=list)
    assigned_to: str | None = None
    result: Any = None
    failure_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_leaf(self) -> bool:
        return not self.subtask_ids

    @property
    def primary_capability(self) -> str | None:
        return self.required_capabilities[0] if self.required_capabilities else None


@dataclass(slots=True)
class TaskPlan:
    """A goal decomposed into a task graph.

    Status is derived from the tasks: completed when every task is completed,
    failed when a root task failed, in-progress once any task has left
    pending, pending otherwise.
    """

    name: str
    description: str
    id: str = field(default_factory=lambda: f"plan_{uuid4().hex[:12]}")
    tasks: dict[str, Task] = field(default_factory=dict)
    root_task_ids: list[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    context: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def children(self, task: Task) -> list[Task]:
        return [self.tasks[child_id] for child_id in task.subtask_ids if child_id in self.tasks]

    def ancestors(self, task: Task) -> Iterator[Task]:
        """Yield the parent, grandparent, ... of ``task``."""
        parent_id = task.parent_task_id
        while parent_id is not None:
            parent = self.tasks.get(parent_id)
            if parent is None:
                return
            yield parent
            parent_id = parent.parent_task_id

    def leaf_tasks(self) -> list[Task]:
        return [task for task in self.tasks.values() if task.is_leaf]

    def count(self, status: TaskStatus) -> int:
        return sum(1 for task in self.tasks.values() if task.status == status)

    def derive_status(self) -> TaskStatus:
        if not self.tasks:
            return TaskStatus.PENDING
        if all(task.status == TaskStatus.COMPLETED for task in self.tasks.values()):
            return TaskStatus.COMPLETED
        if any(
            self.tasks[root_id].status == TaskStatus.FAILED
            for root_id in self.root_task_ids
            if root_id in self.tasks
        ):
            return TaskStatus.FAILED
        if any(task.status != TaskStatus.PENDING for task in self.tasks.values()):
            return TaskStatus.IN_PROGRESS
        return TaskStatus.PENDING

    def refresh_status(self) -> TaskStatus:
        """Recompute ``status`` and the plan timestamps; return the new status."""
        status = self.derive_status()
        now = _now()
        if status != self.status:
            self.status = status
            self.completed_at = now if status.is_terminal else None
        self.updated_at = now
        return status


def depends_on(tasks: dict[str, Task], task_id: str, target_id: str) -> bool:
    """Return True if ``task_id`` depends on ``target_id``, directly or transitively."""
    stack = list(tasks[task_id].dependencies) if task_id in tasks else []
    seen: set[str] = set()
    while stack:
        current = stack.pop()
        if current == target_id:
            return True
        if current in seen or current not in tasks:
            continue
        seen.add(current)
        stack.extend(tasks[current].dependencies)
    return False


def has_cycle(tasks: dict[str, Task]) -> bool:
    """Return True if the dependency edges of ``tasks`` contain a cycle."""
    return any(depends_on(tasks, task_id, task_id) for task_id in tasks)
