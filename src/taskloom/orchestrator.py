"""Orchestrator: one facade over planning, discovery and execution.

Wires an ExecutorRegistry, AgentDiscovery, TaskPlanner and TaskExecutor that
share a single event bus, and exposes their operations as one service API.

Usage:
    orchestrator = Orchestrator(decomposer=my_decomposer)
    orchestrator.register_executor(FunctionExecutor("writer", ["writing"], write))

    plan = await orchestrator.create_plan("Report", "Write a report on solar panels")
    result = await orchestrator.execute_plan(plan.id)

Or from config.yaml, with LLM executors and the LLM decomposer:
    orchestrator = Orchestrator.from_config(load_config())
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from taskloom.agents.base import Executor
from taskloom.agents.executors import LLMExecutor
from taskloom.agents.registry import ExecutorRegistry
from taskloom.config.models import TaskloomConfig, get_default_config
from taskloom.discovery.capabilities import CapabilityRecord
from taskloom.discovery.metrics import DiscoveryMetrics, MetricsUpdate
from taskloom.discovery.models import (
    CapabilityRequest,
    DiscoveryOptions,
    DiscoveryResult,
    RequestPriority,
)
from taskloom.discovery.service import AgentDiscovery
from taskloom.execution.events import EventBus, EventHandler, ExecutionEventType
from taskloom.execution.executor import (
    ExecutionOptions,
    PlanExecutionResult,
    TaskExecutionResult,
    TaskExecutor,
)
from taskloom.observability.logging import get_logger
from taskloom.providers.base import LLMAdapter
from taskloom.providers.litellm_adapter import LiteLLMAdapter
from taskloom.tasks.decomposition import LLMDecomposer, TaskDecomposer
from taskloom.tasks.models import Task, TaskPlan, TaskStatus
from taskloom.tasks.planner import PlanningOptions, TaskPlanner

log = get_logger(__name__)


class Orchestrator:
    """Service API of the engine."""

    def __init__(
        self,
        decomposer: TaskDecomposer | None = None,
        *,
        config: TaskloomConfig | None = None,
        registry: ExecutorRegistry | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._config = config or TaskloomConfig()
        self.registry = registry or ExecutorRegistry()
        self.events = event_bus or EventBus()
        self.discovery = AgentDiscovery(self.registry, self._config.discovery)
        self.planner = TaskPlanner(
            decomposer,
            discovery=self.discovery,
            config=self._config.planning,
        )
        self.executor = TaskExecutor(
            self.planner,
            self.registry,
            self.discovery,
            config=self._config.execution,
            event_bus=self.events,
        )

    @classmethod
    def from_config(
        cls,
        config: TaskloomConfig | None = None,
        *,
        adapter: LLMAdapter | None = None,
    ) -> Orchestrator:
        """Build an orchestrator with the LLM decomposer and configured LLM executors."""
        config = config or get_default_config()
        adapter = adapter or LiteLLMAdapter()
        decomposer = LLMDecomposer(
            adapter,
            model=config.planning.model,
            temperature=config.planning.temperature,
        )
        orchestrator = cls(decomposer, config=config)
        for executor_config in config.executors:
            orchestrator.register_executor(LLMExecutor.from_config(executor_config, adapter))
        log.info("orchestrator.created", executor_count=len(config.executors))
        return orchestrator

    @property
    def config(self) -> TaskloomConfig:
        return self._config

    # ------------------------------------------------------------------
    # Executors
    # ------------------------------------------------------------------

    def register_executor(self, executor: Executor, *, replace: bool = False) -> None:
        self.registry.register(executor, replace=replace)

    def unregister_executor(self, executor_id: str) -> bool:
        return self.registry.unregister(executor_id)

    def list_executors(self) -> list[Executor]:
        return self.registry.list_executors()

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def planning_options(self, **overrides: Any) -> PlanningOptions:
        """PlanningOptions from config, with keyword overrides."""
        return PlanningOptions.from_config(self._config.planning, **overrides)

    async def create_plan(
        self,
        name: str,
        description: str,
        options: PlanningOptions | None = None,
    ) -> TaskPlan:
        return await self.planner.create_plan(name, description, options)

    def get_ready_tasks(self, plan_id: str) -> list[Task]:
        return self.planner.get_ready_tasks(plan_id)

    def update_task_status(
        self,
        plan_id: str,
        task_id: str,
        status: TaskStatus | str,
        result: Any = None,
        failure_reason: str | None = None,
    ) -> bool:
        return self.planner.update_task_status(plan_id, task_id, status, result, failure_reason)

    def get_task_plan(self, plan_id: str) -> TaskPlan | None:
        return self.planner.get_task_plan(plan_id)

    def list_task_plans(self) -> list[TaskPlan]:
        return self.planner.list_task_plans()

    def delete_task_plan(self, plan_id: str) -> bool:
        return self.planner.delete_task_plan(plan_id)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover_agent(self, options: DiscoveryOptions) -> DiscoveryResult | None:
        return self.discovery.discover_agent(options)

    def update_metrics(
        self,
        executor_id: str,
        capability: str,
        update: MetricsUpdate,
    ) -> DiscoveryMetrics:
        return self.discovery.update_metrics(executor_id, capability, update)

    def register_capability(
        self,
        name: str,
        description: str = "",
        executor_id: str | None = None,
    ) -> CapabilityRecord:
        return self.discovery.register_capability(name, description, executor_id)

    def request_capability(
        self,
        name: str,
        requester_id: str,
        priority: RequestPriority | str = RequestPriority.MEDIUM,
        reason: str = "",
    ) -> CapabilityRequest:
        return self.discovery.request_capability(name, requester_id, priority, reason)

    def list_capabilities(self) -> list[CapabilityRecord]:
        return self.discovery.list_capabilities()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execution_options(self, **overrides: Any) -> ExecutionOptions:
        """ExecutionOptions from config, with keyword overrides."""
        return ExecutionOptions.from_config(self._config.execution, **overrides)

    async def execute_task_directly(
        self,
        plan_id: str,
        task_id: str,
        options: ExecutionOptions | None = None,
    ) -> TaskExecutionResult:
        return await self.executor.execute_task_directly(plan_id, task_id, options)

    async def execute_plan(
        self,
        plan_id: str,
        options: ExecutionOptions | None = None,
    ) -> PlanExecutionResult:
        return await self.executor.execute_plan(plan_id, options)

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Iterable[ExecutionEventType] | None = None,
    ) -> str:
        return self.events.subscribe(handler, event_types)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self.events.unsubscribe(subscription_id)
