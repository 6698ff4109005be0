"""Unit tests for taskloom.orchestrator.Orchestrator."""

from collections.abc import Callable
import json

from taskloom.agents import LLMExecutor
from taskloom.config.models import (
    CapabilityConfig,
    ExecutorConfig,
    PlanningConfig,
    TaskloomConfig,
)
from taskloom.core.errors import ProviderError
from taskloom.discovery import DiscoveryOptions, MetricsUpdate, RequestStatus
from taskloom.execution import ExecutionEvent, ExecutionEventType
from taskloom.orchestrator import Orchestrator
from taskloom.tasks import SubtaskSpec, TaskStatus


class TestFacade:
    """Operations delegated to the planner, discovery and executor."""

    async def test_plan_and_execute(
        self,
        make_executor: Callable,
        scripted_decomposer: Callable,
    ) -> None:
        decomposer = scripted_decomposer(
            script={
                "Report": [
                    SubtaskSpec(name="collect", description="Collect facts"),
                    SubtaskSpec(name="write", description="Write it", dependencies=("collect",)),
                ]
            }
        )
        orchestrator = Orchestrator(decomposer)
        orchestrator.register_executor(make_executor("writer", ["writing"]))
        seen: list[ExecutionEvent] = []
        subscription = orchestrator.subscribe(seen.append, [ExecutionEventType.PLAN_COMPLETED])

        plan = await orchestrator.create_plan(
            "Report",
            "Write a report",
            orchestrator.planning_options(required_capabilities=("writing",)),
        )
        result = await orchestrator.execute_plan(
            plan.id, orchestrator.execution_options(retry_delay_seconds=0.0)
        )

        assert result.status == TaskStatus.COMPLETED
        assert orchestrator.get_task_plan(plan.id) is plan
        assert orchestrator.list_task_plans() == [plan]
        assert [e.type for e in seen] == [ExecutionEventType.PLAN_COMPLETED]
        assert orchestrator.unsubscribe(subscription)
        assert orchestrator.delete_task_plan(plan.id)

    async def test_manual_status_updates(self) -> None:
        orchestrator = Orchestrator()
        plan = await orchestrator.create_plan("Report", "Write a report")
        root_id = plan.root_task_ids[0]

        assert [t.id for t in orchestrator.get_ready_tasks(plan.id)] == [root_id]
        assert orchestrator.update_task_status(plan.id, root_id, "completed", "done")
        assert orchestrator.get_ready_tasks(plan.id) == []
        assert plan.status == TaskStatus.COMPLETED

    async def test_execute_task_directly(self, make_executor: Callable) -> None:
        orchestrator = Orchestrator()
        orchestrator.register_executor(make_executor("writer", ["writing"]))
        plan = await orchestrator.create_plan(
            "Report",
            "Write a report",
            orchestrator.planning_options(required_capabilities=("writing",)),
        )

        result = await orchestrator.execute_task_directly(plan.id, plan.root_task_ids[0])

        assert result.success
        assert result.executor_id == "writer"

    def test_discovery_operations(self, make_executor: Callable) -> None:
        orchestrator = Orchestrator()
        request = orchestrator.request_capability("translation", "task_1", "high")
        assert request.status == RequestStatus.PENDING

        orchestrator.register_executor(make_executor("polyglot", ["translation"]))
        orchestrator.register_capability("proofreading", "check spelling", "polyglot")
        metrics = orchestrator.update_metrics(
            "polyglot", "translation", MetricsUpdate(success=True, execution_time_ms=120.0)
        )
        match = orchestrator.discover_agent(DiscoveryOptions(capability="translation"))

        assert request.status == RequestStatus.FULFILLED
        assert metrics.usage_count == 1
        assert match is not None
        assert match.executor_id == "polyglot"
        assert [c.name for c in orchestrator.list_capabilities()] == [
            "proofreading",
            "translation",
        ]

    def test_executor_registration(self, make_executor: Callable) -> None:
        orchestrator = Orchestrator()
        orchestrator.register_executor(make_executor("writer", ["writing"]))

        assert [e.id for e in orchestrator.list_executors()] == ["writer"]
        assert orchestrator.unregister_executor("writer")
        assert orchestrator.list_executors() == []

    def test_options_follow_config(self) -> None:
        config = TaskloomConfig(planning=PlanningConfig(max_depth=1, max_subtasks=4))
        orchestrator = Orchestrator(config=config)

        planning = orchestrator.planning_options(max_depth=0)
        execution = orchestrator.execution_options(parallel_limit=9)

        assert planning.max_depth == 0
        assert planning.max_subtasks == 4
        assert execution.parallel_limit == 9
        assert execution.retry_count == config.execution.retry_count
        assert orchestrator.config is config


class TestFromConfig:
    """Orchestrator.from_config with a fake LLM adapter."""

    def _config(self) -> TaskloomConfig:
        return TaskloomConfig(
            planning=PlanningConfig(max_depth=1),
            executors=[
                ExecutorConfig(
                    id="writer",
                    model="gpt-4o-mini",
                    capabilities=[CapabilityConfig(name="writing", description="write text")],
                )
            ],
        )

    def test_registers_llm_executors(self, fake_adapter: Callable) -> None:
        orchestrator = Orchestrator.from_config(self._config(), adapter=fake_adapter())

        executors = orchestrator.list_executors()
        assert len(executors) == 1
        assert isinstance(executors[0], LLMExecutor)
        assert executors[0].model == "gpt-4o-mini"

    def test_default_config(self, fake_adapter: Callable) -> None:
        orchestrator = Orchestrator.from_config(adapter=fake_adapter())

        assert {e.id for e in orchestrator.list_executors()} == {"researcher", "writer", "coder"}

    async def test_goal_to_results(self, fake_adapter: Callable) -> None:
        subtasks = [
            {"name": "outline", "description": "Outline the report"},
            {"name": "draft", "description": "Draft the report", "dependencies": ["outline"]},
        ]
        adapter = fake_adapter(replies=[json.dumps(subtasks)], default="done")
        orchestrator = Orchestrator.from_config(self._config(), adapter=adapter)

        plan = await orchestrator.create_plan(
            "Report",
            "Write a report",
            orchestrator.planning_options(required_capabilities=("writing",)),
        )
        result = await orchestrator.execute_plan(
            plan.id, orchestrator.execution_options(retry_delay_seconds=0.0)
        )

        assert result.status == TaskStatus.COMPLETED
        assert result.total_tasks == 3
        assert plan.tasks[plan.root_task_ids[0]].result == ["done", "done"]
        assert len(adapter.calls) == 3

    async def test_provider_failure_fails_task(self, fake_adapter: Callable) -> None:
        adapter = fake_adapter(
            replies=["[]"] + [ProviderError("rate limited", provider="openai")] * 3
        )
        orchestrator = Orchestrator.from_config(self._config(), adapter=adapter)
        plan = await orchestrator.create_plan(
            "Report",
            "Write a report",
            orchestrator.planning_options(required_capabilities=("writing",)),
        )

        result = await orchestrator.execute_plan(
            plan.id, orchestrator.execution_options(retry_delay_seconds=0.0)
        )

        root = plan.tasks[plan.root_task_ids[0]]
        assert result.status == TaskStatus.FAILED
        assert root.failure_reason is not None
        assert "rate limited" in root.failure_reason
