"""Task planner: builds task graphs and owns every change to them.

Usage:
    planner = TaskPlanner(decomposer=LLMDecomposer(adapter), discovery=discovery)
    plan = await planner.create_plan("Report", "Write a market report on solar panels")

    for task in planner.get_ready_tasks(plan.id):
        planner.update_task_status(plan.id, task.id, TaskStatus.IN_PROGRESS)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from taskloom.config.models import PlanningConfig
from taskloom.core.errors import PlanNotFoundError, TaskNotFoundError, ValidationError
from taskloom.core.security import InputValidator
from taskloom.discovery.models import DiscoveryOptions, FallbackStrategy
from taskloom.discovery.service import AgentDiscovery
from taskloom.observability.logging import get_logger
from taskloom.tasks.decomposition import DecompositionRequest, SubtaskSpec, TaskDecomposer
from taskloom.tasks.models import DEFAULT_PRIORITY, Task, TaskPlan, TaskStatus, depends_on

log = get_logger(__name__)

BLOCKED_REASON = "Blocked by failed dependency"


@dataclass(frozen=True, slots=True)
class PlanningOptions:
    """Options for create_plan.

    Attributes:
        max_depth: Decomposition depth below the root (0 keeps a single task).
        max_subtasks: Subtasks requested per decomposition.
        context: Stored on the plan and handed to the decomposer and executors.
        preferred_agent_ids: Executors favoured when assigning leaf tasks.
        priority: Priority of the root task.
        required_capabilities: Capabilities of the root task.
    """

    max_depth: int = 3
    max_subtasks: int = 5
    context: dict[str, Any] = field(default_factory=dict)
    preferred_agent_ids: tuple[str, ...] = ()
    priority: int = DEFAULT_PRIORITY
    required_capabilities: tuple[str, ...] = ()

    @classmethod
    def from_config(cls, config: PlanningConfig, **overrides: Any) -> PlanningOptions:
        values: dict[str, Any] = {
            "max_depth": config.max_depth,
            "max_subtasks": config.max_subtasks,
        }
        values.update(overrides)
        return cls(**values)


class TaskPlanner:
    """Creates plans, answers readiness queries and applies status changes.

    Plans live in memory until deleted. Parent tasks are never executed; they
    complete or fail when all their children are terminal.
    """

    def __init__(
        self,
        decomposer: TaskDecomposer | None = None,
        *,
        discovery: AgentDiscovery | None = None,
        config: PlanningConfig | None = None,
    ) -> None:
        self._decomposer = decomposer
        self._discovery = discovery
        self._config = config or PlanningConfig()
        self._plans: dict[str, TaskPlan] = {}

    # ------------------------------------------------------------------
    # Plan lifecycle
    # ------------------------------------------------------------------

    async def create_plan(
        self,
        name: str,
        description: str,
        options: PlanningOptions | None = None,
    ) -> TaskPlan:
        """Decompose ``description`` into a stored task plan.

        Decomposition failures never abort planning: the affected task simply
        stays a leaf.

        Raises:
            ValidationError: If the description is empty or too long.
        """
        is_valid, error_msg = InputValidator.validate_goal(description)
        if not is_valid:
            raise ValidationError(error_msg, field="description")

        options = options or PlanningOptions.from_config(self._config)
        plan = TaskPlan(name=name, description=description, context=dict(options.context))
        root = Task(
            name=name,
            description=description,
            priority=options.priority,
            required_capabilities=list(options.required_capabilities),
            metadata={"depth": 0},
        )
        plan.tasks[root.id] = root
        plan.root_task_ids.append(root.id)

        if self._decomposer is not None:
            await self._decompose_tree(plan, root, options)
        if self._discovery is not None:
            self._assign_leaves(plan, options)

        plan.refresh_status()
        self._plans[plan.id] = plan
        log.info(
            "planner.plan.created",
            plan_id=plan.id,
            task_count=len(plan.tasks),
            leaf_count=len(plan.leaf_tasks()),
        )
        return plan

    async def _decompose_tree(self, plan: TaskPlan, root: Task, options: PlanningOptions) -> None:
        assert self._decomposer is not None
        available: tuple[str, ...] = ()
        if self._discovery is not None:
            available = tuple(record.name for record in self._discovery.list_capabilities())

        stack: list[tuple[str, int]] = [(root.id, 0)]
        while stack:
            task_id, depth = stack.pop()
            if depth >= options.max_depth:
                continue
            task = plan.tasks[task_id]

            result = await self._decomposer.decompose(
                DecompositionRequest(
                    task_id=task.id,
                    name=task.name,
                    description=task.description,
                    depth=depth,
                    max_depth=options.max_depth,
                    max_subtasks=options.max_subtasks,
                    priority=task.priority,
                    available_capabilities=available,
                    context=plan.context,
                )
            )
            if result.is_err:
                log.warning(
                    "planner.decomposition.skipped",
                    plan_id=plan.id,
                    task_id=task.id,
                    error=str(result.error),
                )
                continue

            children = self._add_subtasks(plan, task, result.value[: options.max_subtasks], depth)
            # reversed so the first child is decomposed first
            for child in reversed(children):
                stack.append((child.id, depth + 1))

    def _add_subtasks(
        self,
        plan: TaskPlan,
        parent: Task,
        specs: list[SubtaskSpec],
        depth: int,
    ) -> list[Task]:
        parent_text = parent.description.strip().lower()
        created: list[tuple[Task, SubtaskSpec]] = []
        name_to_id: dict[str, str] = {}

        for spec in specs:
            if spec.description.strip().lower() == parent_text:
                log.warning(
                    "planner.subtask.cyclic_dropped",
                    plan_id=plan.id,
                    parent_id=parent.id,
                    name=spec.name,
                )
                continue
            task = Task(
                name=spec.name,
                description=spec.description,
                priority=spec.priority,
                parent_task_id=parent.id,
                required_capabilities=list(
                    spec.required_capabilities or parent.required_capabilities
                ),
                metadata={"depth": depth + 1},
            )
            plan.tasks[task.id] = task
            parent.subtask_ids.append(task.id)
            name_to_id.setdefault(spec.name, task.id)
            created.append((task, spec))

        for task, spec in created:
            for dependency_name in spec.dependencies:
                dependency_id = name_to_id.get(dependency_name)
                if dependency_id is None:
                    reason = "unknown_name"
                elif dependency_id == task.id:
                    reason = "self_reference"
                elif depends_on(plan.tasks, dependency_id, task.id):
                    reason = "cycle"
                else:
                    if dependency_id not in task.dependencies:
                        task.dependencies.append(dependency_id)
                    continue
                log.warning(
                    "planner.dependency.dropped",
                    plan_id=plan.id,
                    task_id=task.id,
                    dependency=dependency_name,
                    reason=reason,
                )

        return [task for task, _ in created]

    def _assign_leaves(self, plan: TaskPlan, options: PlanningOptions) -> None:
        assert self._discovery is not None
        for task in plan.leaf_tasks():
            capability = task.primary_capability
            if task.assigned_to or capability is None:
                continue
            match = self._discovery.discover_agent(
                DiscoveryOptions(
                    capability=capability,
                    preferred_agent_ids=options.preferred_agent_ids,
                    required_capabilities=tuple(task.required_capabilities),
                    fallback_strategy=FallbackStrategy.DEGRADED,
                )
            )
            if match is not None:
                task.assigned_to = match.executor_id

    def get_task_plan(self, plan_id: str) -> TaskPlan | None:
        return self._plans.get(plan_id)

    def list_task_plans(self) -> list[TaskPlan]:
        return list(self._plans.values())

    def delete_task_plan(self, plan_id: str) -> bool:
        if self._plans.pop(plan_id, None) is None:
            return False
        log.info("planner.plan.deleted", plan_id=plan_id)
        return True

    def _require_plan(self, plan_id: str) -> TaskPlan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def _require_task(self, plan: TaskPlan, task_id: str) -> Task:
        task = plan.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(plan.id, task_id)
        return task

    def get_task(self, plan_id: str, task_id: str) -> Task:
        """Return a task, raising PlanNotFoundError / TaskNotFoundError."""
        return self._require_task(self._require_plan(plan_id), task_id)

    # ------------------------------------------------------------------
    # Manual graph construction
    # ------------------------------------------------------------------

    def add_task(self, plan_id: str, task: Task) -> Task:
        """Add a task to an existing plan.

        Dependencies that are unknown, not siblings, self references or
        cycle-closing are dropped with a warning.

        Raises:
            PlanNotFoundError: Unknown plan.
            TaskNotFoundError: Unknown parent task.
            ValidationError: Duplicate id, terminal task or terminal parent.
        """
        plan = self._require_plan(plan_id)
        if task.id in plan.tasks:
            raise ValidationError(f"Task already exists: {task.id}", field="id", value=task.id)
        if task.is_terminal:
            raise ValidationError("Cannot add a task in a terminal state", field="status")

        parent = None
        if task.parent_task_id is not None:
            parent = self._require_task(plan, task.parent_task_id)
            if parent.is_terminal:
                raise ValidationError(
                    f"Cannot add a subtask to terminal task {parent.id}",
                    field="parent_task_id",
                    value=parent.id,
                )

        requested = list(task.dependencies)
        task.dependencies = []
        task.subtask_ids = []
        plan.tasks[task.id] = task
        for dependency_id in requested:
            dependency = plan.tasks.get(dependency_id)
            if dependency is None:
                reason = "unknown_task"
            elif dependency_id == task.id:
                reason = "self_reference"
            elif dependency.parent_task_id != task.parent_task_id:
                reason = "not_a_sibling"
            elif depends_on(plan.tasks, dependency_id, task.id):
                reason = "cycle"
            else:
                if dependency_id not in task.dependencies:
                    task.dependencies.append(dependency_id)
                continue
            log.warning(
                "planner.dependency.dropped",
                plan_id=plan.id,
                task_id=task.id,
                dependency=dependency_id,
                reason=reason,
            )

        if parent is not None:
            parent.subtask_ids.append(task.id)
        else:
            plan.root_task_ids.append(task.id)
        plan.refresh_status()
        log.info("planner.task.added", plan_id=plan.id, task_id=task.id)
        return task

    def assign_task(self, plan_id: str, task_id: str, executor_id: str) -> bool:
        """Set ``assigned_to`` on a pending task. Returns False otherwise."""
        task = self.get_task(plan_id, task_id)
        if task.status != TaskStatus.PENDING:
            return False
        task.assigned_to = executor_id
        return True

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def _dependencies_met(self, plan: TaskPlan, task: Task) -> bool:
        chain = [task, *plan.ancestors(task)]
        for node in chain:
            for dependency_id in node.dependencies:
                dependency = plan.tasks.get(dependency_id)
                if dependency is None or dependency.status != TaskStatus.COMPLETED:
                    return False
        return True

    def get_ready_tasks(self, plan_id: str) -> list[Task]:
        """Pending leaf tasks whose own and ancestors' dependencies are completed.

        Ordered by priority (highest first), then creation order.
        """
        plan = self._require_plan(plan_id)
        ready = [
            (order, task)
            for order, task in enumerate(plan.tasks.values())
            if task.status == TaskStatus.PENDING
            and task.is_leaf
            and self._dependencies_met(plan, task)
        ]
        ready.sort(key=lambda item: (-item[1].priority, item[0]))
        return [task for _, task in ready]

    def _is_blocked(self, plan: TaskPlan, task: Task) -> bool:
        for node in [task, *plan.ancestors(task)]:
            for dependency_id in node.dependencies:
                dependency = plan.tasks.get(dependency_id)
                if dependency is not None and dependency.status == TaskStatus.FAILED:
                    return True
        return False

    def fail_blocked_tasks(self, plan_id: str) -> list[Task]:
        """Fail pending leaves whose dependency chain contains a failed task.

        Repeats until no more tasks become blocked, so failures cascade
        through chains of dependents.
        """
        plan = self._require_plan(plan_id)
        failed: list[Task] = []
        changed = True
        while changed:
            changed = False
            for task in list(plan.tasks.values()):
                if task.status != TaskStatus.PENDING or not task.is_leaf:
                    continue
                if self._is_blocked(plan, task):
                    self.update_task_status(
                        plan_id, task.id, TaskStatus.FAILED, failure_reason=BLOCKED_REASON
                    )
                    failed.append(task)
                    changed = True
        if failed:
            log.info("planner.tasks.blocked", plan_id=plan_id, count=len(failed))
        return failed

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    def update_task_status(
        self,
        plan_id: str,
        task_id: str,
        status: TaskStatus | str,
        result: Any = None,
        failure_reason: str | None = None,
    ) -> bool:
        """Apply a status change and propagate it through the tree.

        Returns:
            True if the change was applied; False for terminal tasks or when
            the status is unchanged.

        Raises:
            PlanNotFoundError / TaskNotFoundError: Unknown ids.
            ValidationError: Moving a task back to pending.
        """
        plan = self._require_plan(plan_id)
        task = self._require_task(plan, task_id)
        status = TaskStatus(status)

        if task.is_terminal or status == task.status:
            log.debug(
                "planner.task.update_ignored",
                plan_id=plan_id,
                task_id=task_id,
                current=task.status.value,
                requested=status.value,
            )
            return False
        if status == TaskStatus.PENDING:
            raise ValidationError(
                f"Task {task_id} cannot return to pending",
                field="status",
                value=status.value,
            )

        self._apply(task, status, result, failure_reason)
        if status == TaskStatus.IN_PROGRESS:
            for ancestor in plan.ancestors(task):
                if ancestor.status == TaskStatus.PENDING:
                    self._apply(ancestor, TaskStatus.IN_PROGRESS)
        else:
            self._propagate(plan, task)

        plan.refresh_status()
        log.info(
            "planner.task.status_changed",
            plan_id=plan_id,
            task_id=task_id,
            status=status.value,
            plan_status=plan.status.value,
        )
        return True

    @staticmethod
    def _apply(
        task: Task,
        status: TaskStatus,
        result: Any = None,
        failure_reason: str | None = None,
    ) -> None:
        task.status = status
        task.updated_at = datetime.now(UTC)
        if status == TaskStatus.COMPLETED:
            task.result = result
            task.completed_at = task.updated_at
        elif status == TaskStatus.FAILED:
            task.failure_reason = failure_reason or "Task failed"
            task.completed_at = task.updated_at

    def _propagate(self, plan: TaskPlan, task: Task) -> None:
        current = task
        while current.parent_task_id is not None:
            parent = plan.tasks.get(current.parent_task_id)
            if parent is None or parent.is_terminal:
                return
            children = plan.children(parent)
            if not all(child.is_terminal for child in children):
                return

            failed = [child for child in children if child.status == TaskStatus.FAILED]
            if failed:
                self._apply(
                    parent,
                    TaskStatus.FAILED,
                    failure_reason="Subtask(s) failed: " + ", ".join(c.name for c in failed),
                )
            else:
                self._apply(
                    parent, TaskStatus.COMPLETED, result=[child.result for child in children]
                )
            log.info(
                "planner.task.propagated",
                plan_id=plan.id,
                task_id=parent.id,
                status=parent.status.value,
            )
            current = parent
