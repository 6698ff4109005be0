"""Task executor: runs tasks and whole plans.

A task moves pending -> in-progress -> completed | failed, always through
TaskPlanner.update_task_status. execute_plan repeatedly asks the planner for
ready tasks, routes unassigned ones through discovery, and runs up to
``parallel_limit`` of them concurrently until nothing is ready.

On timeout the running batch is cancelled and its tasks are left
in-progress; the result reports ``timed_out=True``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
import time
from typing import Any

from taskloom.agents.base import Executor, TaskInput
from taskloom.agents.registry import ExecutorRegistry
from taskloom.config.models import ExecutionConfig
from taskloom.core.errors import ExecutorConfigurationError, PlanNotFoundError, ValidationError
from taskloom.discovery.metrics import MetricsUpdate
from taskloom.discovery.models import DiscoveryOptions, FallbackStrategy
from taskloom.discovery.service import AgentDiscovery
from taskloom.execution.events import EventBus, EventHandler, ExecutionEvent, ExecutionEventType
from taskloom.observability.logging import bind_context, get_logger, unbind_context
from taskloom.tasks.models import Task, TaskPlan, TaskStatus
from taskloom.tasks.planner import TaskPlanner

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    """Options for task and plan execution.

    Attributes:
        parallel_limit: Maximum tasks running at once.
        timeout_seconds: Budget for a whole execute_plan call (None = no limit).
        retry_count: Extra attempts after a failed executor call.
        retry_delay_seconds: Pause between attempts.
        context: Merged into the plan context handed to executors.
    """

    parallel_limit: int = 3
    timeout_seconds: float | None = 300.0
    retry_count: int = 2
    retry_delay_seconds: float = 1.0
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.parallel_limit < 1:
            raise ValidationError(
                "parallel_limit must be at least 1",
                field="parallel_limit",
                value=self.parallel_limit,
            )
        if self.retry_count < 0:
            raise ValidationError(
                "retry_count cannot be negative",
                field="retry_count",
                value=self.retry_count,
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValidationError(
                "timeout_seconds must be positive",
                field="timeout_seconds",
                value=self.timeout_seconds,
            )

    @classmethod
    def from_config(cls, config: ExecutionConfig, **overrides: Any) -> ExecutionOptions:
        values: dict[str, Any] = {
            "parallel_limit": config.parallel_limit,
            "timeout_seconds": config.timeout_seconds,
            "retry_count": config.retry_count,
            "retry_delay_seconds": config.retry_delay_seconds,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True, slots=True)
class TaskExecutionResult:
    """Outcome of running one task."""

    task_id: str
    status: TaskStatus
    result: Any = None
    error: str | None = None
    executor_id: str | None = None
    attempts: int = 0
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == TaskStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class PlanExecutionResult:
    """Outcome of execute_plan.

    Counts cover every task of the plan, composite tasks included.
    """

    plan_id: str
    status: TaskStatus
    results: dict[str, TaskExecutionResult]
    completed_tasks: int
    failed_tasks: int
    total_tasks: int
    execution_time_ms: float
    timed_out: bool = False


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class TaskExecutor:
    """Runs tasks of stored plans on registered executors."""

    def __init__(
        self,
        planner: TaskPlanner,
        registry: ExecutorRegistry,
        discovery: AgentDiscovery | None = None,
        *,
        config: ExecutionConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._planner = planner
        self._registry = registry
        self._discovery = discovery
        self._config = config or ExecutionConfig()
        self._events = event_bus or EventBus()

    @property
    def events(self) -> EventBus:
        return self._events

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Iterable[ExecutionEventType] | None = None,
    ) -> str:
        return self._events.subscribe(handler, event_types)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._events.unsubscribe(subscription_id)

    def _emit(
        self,
        event_type: ExecutionEventType,
        plan_id: str,
        task_id: str | None = None,
        **payload: Any,
    ) -> None:
        self._events.publish(
            ExecutionEvent(type=event_type, plan_id=plan_id, task_id=task_id, payload=payload)
        )

    def _require_plan(self, plan_id: str) -> TaskPlan:
        plan = self._planner.get_task_plan(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def _resolve_executor(self, task: Task) -> Executor:
        if task.assigned_to is None:
            raise ExecutorConfigurationError(
                f"Task {task.id} has no assigned executor",
                task_id=task.id,
                executor_id=None,
            )
        executor = self._registry.get_executor(task.assigned_to)
        if executor is None:
            raise ExecutorConfigurationError(
                f"Executor not registered: {task.assigned_to}",
                task_id=task.id,
                executor_id=task.assigned_to,
            )
        return executor

    # ------------------------------------------------------------------
    # Single task
    # ------------------------------------------------------------------

    async def execute_task_directly(
        self,
        plan_id: str,
        task_id: str,
        options: ExecutionOptions | None = None,
    ) -> TaskExecutionResult:
        """Run one task on its assigned executor, with retries.

        Raises:
            PlanNotFoundError / TaskNotFoundError: Unknown ids.
            ExecutorConfigurationError: Task unassigned or executor unknown.
            ValidationError: Task already terminal.
        """
        options = options or ExecutionOptions.from_config(self._config)
        task = self._planner.get_task(plan_id, task_id)
        if task.is_terminal:
            raise ValidationError(
                f"Task {task_id} is already {task.status.value}",
                field="status",
                value=task.status.value,
            )
        executor = self._resolve_executor(task)
        return await self._run_task(plan_id, task, executor, options)

    def _build_input(self, plan: TaskPlan, task: Task, options: ExecutionOptions) -> TaskInput:
        dependency_results = {
            plan.tasks[dep_id].name: plan.tasks[dep_id].result
            for dep_id in task.dependencies
            if dep_id in plan.tasks
        }
        context: dict[str, Any] = {**plan.context, **options.context}
        if dependency_results:
            context["dependency_results"] = dependency_results
        return TaskInput(
            task_id=task.id,
            plan_id=plan.id,
            name=task.name,
            description=task.description,
            required_capabilities=tuple(task.required_capabilities),
            context=context,
        )

    def _record_attempt(
        self, executor_id: str, task: Task, success: bool, elapsed_ms: float
    ) -> None:
        capability = task.primary_capability
        if self._discovery is None or capability is None:
            return
        self._discovery.update_metrics(
            executor_id,
            capability,
            MetricsUpdate(success=success, execution_time_ms=elapsed_ms),
        )

    def _already_terminal(
        self, task: Task, executor_id: str, attempts: int, elapsed_ms: float
    ) -> TaskExecutionResult:
        """Report a task that reached a terminal state while this run was in flight."""
        log.warning(
            "executor.task.outcome_discarded",
            task_id=task.id,
            executor_id=executor_id,
            status=task.status.value,
        )
        return TaskExecutionResult(
            task_id=task.id,
            status=task.status,
            result=task.result,
            error=task.failure_reason,
            executor_id=executor_id,
            attempts=attempts,
            execution_time_ms=elapsed_ms,
        )

    async def _run_task(
        self,
        plan_id: str,
        task: Task,
        executor: Executor,
        options: ExecutionOptions,
    ) -> TaskExecutionResult:
        plan = self._require_plan(plan_id)
        started = time.perf_counter()

        self._emit(ExecutionEventType.TASK_STARTED, plan_id, task.id, executor_id=executor.id)
        self._planner.update_task_status(plan_id, task.id, TaskStatus.IN_PROGRESS)
        log.info("executor.task.started", task_id=task.id, executor_id=executor.id)

        base_input = self._build_input(plan, task, options)
        last_error: Exception | None = None
        attempts = 0
        for attempt in range(1, options.retry_count + 2):
            attempts = attempt
            attempt_started = time.perf_counter()
            try:
                output = await executor.execute(replace(base_input, attempt=attempt))
            except Exception as e:
                self._record_attempt(executor.id, task, False, _elapsed_ms(attempt_started))
                last_error = e
                log.warning(
                    "executor.task.attempt_failed",
                    task_id=task.id,
                    executor_id=executor.id,
                    attempt=attempt,
                    error=str(e),
                )
                if attempt <= options.retry_count:
                    await asyncio.sleep(options.retry_delay_seconds)
                continue

            self._record_attempt(executor.id, task, True, _elapsed_ms(attempt_started))
            elapsed = _elapsed_ms(started)
            applied = self._planner.update_task_status(
                plan_id, task.id, TaskStatus.COMPLETED, result=output.output
            )
            if not applied:
                return self._already_terminal(task, executor.id, attempts, elapsed)
            self._emit(
                ExecutionEventType.TASK_COMPLETED,
                plan_id,
                task.id,
                executor_id=executor.id,
                attempts=attempts,
                execution_time_ms=elapsed,
                metadata=output.metadata,
            )
            log.info(
                "executor.task.completed",
                task_id=task.id,
                executor_id=executor.id,
                attempts=attempts,
                execution_time_ms=round(elapsed, 2),
            )
            return TaskExecutionResult(
                task_id=task.id,
                status=TaskStatus.COMPLETED,
                result=output.output,
                executor_id=executor.id,
                attempts=attempts,
                execution_time_ms=elapsed,
            )

        reason = str(last_error) or type(last_error).__name__
        elapsed = _elapsed_ms(started)
        applied = self._planner.update_task_status(
            plan_id, task.id, TaskStatus.FAILED, failure_reason=reason
        )
        if not applied:
            return self._already_terminal(task, executor.id, attempts, elapsed)
        self._emit(
            ExecutionEventType.TASK_FAILED,
            plan_id,
            task.id,
            executor_id=executor.id,
            attempts=attempts,
            error=reason,
        )
        log.warning(
            "executor.task.failed",
            task_id=task.id,
            executor_id=executor.id,
            attempts=attempts,
            error=reason,
        )
        return TaskExecutionResult(
            task_id=task.id,
            status=TaskStatus.FAILED,
            error=reason,
            executor_id=executor.id,
            attempts=attempts,
            execution_time_ms=elapsed,
        )

    # ------------------------------------------------------------------
    # Whole plan
    # ------------------------------------------------------------------

    def _route(self, plan_id: str, task: Task) -> Executor | TaskExecutionResult:
        """Resolve the executor for a ready task, assigning one through discovery.

        A discovery miss fails the task and returns its result instead. An
        assignment to an executor that has since been unregistered is routed
        again when discovery is available.
        """
        stale = (
            task.assigned_to is not None
            and self._discovery is not None
            and self._registry.get_executor(task.assigned_to) is None
        )
        if stale:
            log.info("executor.task.rerouted", task_id=task.id, executor_id=task.assigned_to)
        if task.assigned_to is None or stale:
            capability = task.primary_capability
            match = None
            if capability is not None and self._discovery is not None:
                match = self._discovery.discover_agent(
                    DiscoveryOptions(
                        capability=capability,
                        required_capabilities=tuple(task.required_capabilities),
                        fallback_strategy=FallbackStrategy.DEGRADED,
                    )
                )
            if match is None:
                if capability is None:
                    reason = "No executor assigned and no required capability to route on"
                else:
                    reason = f"No executor available for capability '{capability}'"
                self._planner.update_task_status(
                    plan_id, task.id, TaskStatus.FAILED, failure_reason=reason
                )
                self._emit(ExecutionEventType.TASK_FAILED, plan_id, task.id, error=reason)
                log.warning("executor.task.unroutable", task_id=task.id, capability=capability)
                return TaskExecutionResult(task_id=task.id, status=TaskStatus.FAILED, error=reason)
            self._planner.assign_task(plan_id, task.id, match.executor_id)

        return self._resolve_executor(task)

    async def _drive(
        self,
        plan_id: str,
        options: ExecutionOptions,
        results: dict[str, TaskExecutionResult],
    ) -> None:
        while True:
            ready = self._planner.get_ready_tasks(plan_id)
            if not ready:
                if self._planner.fail_blocked_tasks(plan_id):
                    continue
                return

            batch: list[tuple[Task, Executor]] = []
            for task in ready:
                if len(batch) >= options.parallel_limit:
                    break
                routed = self._route(plan_id, task)
                if isinstance(routed, TaskExecutionResult):
                    results[task.id] = routed
                else:
                    batch.append((task, routed))
            if not batch:
                continue

            log.debug("executor.batch.dispatched", size=len(batch))
            outcomes = await asyncio.gather(
                *[self._run_task(plan_id, task, executor, options) for task, executor in batch]
            )
            for outcome in outcomes:
                results[outcome.task_id] = outcome

    async def execute_plan(
        self,
        plan_id: str,
        options: ExecutionOptions | None = None,
    ) -> PlanExecutionResult:
        """Run a plan until no task is ready, or until the timeout expires.

        Raises:
            PlanNotFoundError: Unknown plan.
            ExecutorConfigurationError: A task is assigned to an unknown executor
                and no discovery service is available to route it again.
        """
        options = options or ExecutionOptions.from_config(self._config)
        plan = self._require_plan(plan_id)
        bind_context(plan_id=plan_id)
        started = time.perf_counter()
        results: dict[str, TaskExecutionResult] = {}
        timed_out = False
        log.info(
            "executor.plan.started",
            task_count=len(plan.tasks),
            parallel_limit=options.parallel_limit,
        )

        try:
            if options.timeout_seconds is None:
                await self._drive(plan_id, options, results)
            else:
                await asyncio.wait_for(
                    self._drive(plan_id, options, results), timeout=options.timeout_seconds
                )
        except TimeoutError:
            timed_out = True
            log.warning("executor.plan.timed_out", timeout_seconds=options.timeout_seconds)
        finally:
            unbind_context("plan_id")

        elapsed = _elapsed_ms(started)
        result = PlanExecutionResult(
            plan_id=plan_id,
            status=plan.status,
            results=results,
            completed_tasks=plan.count(TaskStatus.COMPLETED),
            failed_tasks=plan.count(TaskStatus.FAILED),
            total_tasks=len(plan.tasks),
            execution_time_ms=elapsed,
            timed_out=timed_out,
        )
        self._emit(
            ExecutionEventType.PLAN_COMPLETED,
            plan_id,
            status=result.status.value,
            completed_tasks=result.completed_tasks,
            failed_tasks=result.failed_tasks,
            total_tasks=result.total_tasks,
            timed_out=timed_out,
        )
        log.info(
            "executor.plan.finished",
            plan_id=plan_id,
            status=result.status.value,
            completed_tasks=result.completed_tasks,
            failed_tasks=result.failed_tasks,
            timed_out=timed_out,
        )
        return result
