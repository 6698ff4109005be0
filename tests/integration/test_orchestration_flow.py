"""End-to-end flows through the Orchestrator with in-process executors."""

from collections.abc import Callable

from taskloom.discovery import DiscoveryOptions, FallbackStrategy, FallbackType, RequestStatus
from taskloom.execution import ExecutionEvent, ExecutionEventType, ExecutionOptions
from taskloom.orchestrator import Orchestrator
from taskloom.tasks import SubtaskSpec, TaskStatus


def spec(name: str, *deps: str, caps: tuple[str, ...] = ()) -> SubtaskSpec:
    return SubtaskSpec(
        name=name, description=f"Do {name}", dependencies=deps, required_capabilities=caps
    )


class TestProductLaunch:
    """A two-level plan routed through exact, similar and degraded matches."""

    async def test_plan_runs_to_completion(
        self,
        make_executor: Callable,
        scripted_decomposer: Callable,
        probe,
        fast_options: ExecutionOptions,
    ) -> None:
        decomposer = scripted_decomposer(
            script={
                "Launch": [
                    spec("research", caps=("research",)),
                    spec("copy", "research", caps=("writing",)),
                    spec("audit", caps=("code",)),
                    spec("polish", "copy", caps=("proofreading", "editing")),
                ],
                "copy": [spec("headline"), spec("body", "headline")],
            }
        )
        orchestrator = Orchestrator(decomposer)
        orchestrator.register_executor(make_executor("researcher", ["research"]))
        orchestrator.register_executor(make_executor("writer", ["writing", "editing"]))
        orchestrator.register_executor(make_executor("reviewer", ["code-review"]))
        events: list[ExecutionEvent] = []
        orchestrator.subscribe(events.append)

        plan = await orchestrator.create_plan("Launch", "Launch the new product")
        tasks = {task.name: task for task in plan.tasks.values()}

        assert tasks["audit"].assigned_to == "reviewer"
        assert tasks["polish"].assigned_to == "writer"
        assert tasks["body"].required_capabilities == ["writing"]

        result = await orchestrator.execute_plan(plan.id, fast_options)

        assert result.status == TaskStatus.COMPLETED
        assert result.total_tasks == 7
        assert result.completed_tasks == 7
        order = probe.order
        assert order.index("research") < order.index("headline") < order.index("body")
        assert order.index("body") < order.index("polish")
        assert tasks["copy"].result == ["writer:headline", "writer:body"]
        started = [e for e in events if e.type == ExecutionEventType.TASK_STARTED]
        assert len(started) == 5
        assert events[-1].type == ExecutionEventType.PLAN_COMPLETED

    async def test_fallback_details_visible_through_discovery(
        self, make_executor: Callable
    ) -> None:
        orchestrator = Orchestrator()
        orchestrator.register_executor(make_executor("reviewer", ["code-review"]))
        orchestrator.register_executor(make_executor("writer", ["writing", "editing"]))

        similar = orchestrator.discover_agent(DiscoveryOptions(capability="code"))
        degraded = orchestrator.discover_agent(
            DiscoveryOptions(
                capability="proofreading",
                required_capabilities=("proofreading", "editing"),
                fallback_strategy=FallbackStrategy.DEGRADED,
            )
        )

        assert similar is not None
        assert similar.fallback is not None
        assert similar.fallback.fallback_type == FallbackType.SIMILAR
        assert degraded is not None
        assert degraded.executor_id == "writer"
        assert degraded.fallback is not None
        assert degraded.fallback.coverage == 0.5


class TestLearningFromFailures:
    async def test_unreliable_executor_loses_the_next_plan(
        self, make_executor: Callable, fast_options: ExecutionOptions
    ) -> None:
        orchestrator = Orchestrator()
        orchestrator.register_executor(
            make_executor("alpha", ["writing"], error=RuntimeError("down"))
        )
        orchestrator.register_executor(make_executor("bravo", ["writing"]))
        options = orchestrator.planning_options(required_capabilities=("writing",))

        first = await orchestrator.create_plan("Draft", "Write the first draft", options)
        first_result = await orchestrator.execute_plan(first.id, fast_options)
        second = await orchestrator.create_plan("Draft", "Write the second draft", options)
        second_result = await orchestrator.execute_plan(second.id, fast_options)

        assert first.tasks[first.root_task_ids[0]].assigned_to == "alpha"
        assert first_result.status == TaskStatus.FAILED
        assert second.tasks[second.root_task_ids[0]].assigned_to == "bravo"
        assert second_result.status == TaskStatus.COMPLETED


class TestCapabilityRequests:
    async def test_requested_capability_becomes_routable(
        self, make_executor: Callable, fast_options: ExecutionOptions
    ) -> None:
        orchestrator = Orchestrator()
        options = orchestrator.planning_options(required_capabilities=("translation",))
        plan = await orchestrator.create_plan("Translate", "Translate the manual", options)
        request = orchestrator.request_capability(
            "translation", plan.root_task_ids[0], reason="manual must ship in French"
        )
        assert request.status == RequestStatus.PENDING

        orchestrator.register_executor(make_executor("polyglot", ["translation"]))
        result = await orchestrator.execute_plan(plan.id, fast_options)

        assert request.status == RequestStatus.FULFILLED
        assert result.status == TaskStatus.COMPLETED
        assert plan.tasks[plan.root_task_ids[0]].result == "polyglot:Translate"
