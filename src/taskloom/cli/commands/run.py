"""`taskloom run`: plan a goal, then execute it with the configured executors."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from taskloom.cli.commands._common import load_cli_config, setup_logging
from taskloom.cli.formatters import console
from taskloom.cli.formatters.panels import print_error, print_success, print_warning
from taskloom.cli.formatters.progress import async_spinner
from taskloom.cli.formatters.tables import plan_tree, results_table, styled_status
from taskloom.config.models import TaskloomConfig
from taskloom.core.errors import ExecutorConfigurationError, ValidationError
from taskloom.execution.events import EventHandler, ExecutionEvent, ExecutionEventType
from taskloom.orchestrator import Orchestrator
from taskloom.providers.litellm_adapter import LiteLLMAdapter
from taskloom.tasks.models import TaskPlan, TaskStatus


def _default_capabilities(config: TaskloomConfig) -> tuple[str, ...]:
    for executor in config.executors:
        if executor.capabilities:
            return (executor.capabilities[0].name,)
    return ()


def _plan_name(goal: str) -> str:
    first_line = goal.strip().splitlines()[0] if goal.strip() else goal
    return first_line if len(first_line) <= 60 else first_line[:57] + "..."


def _event_printer(plan: TaskPlan) -> EventHandler:
    def _print(event: ExecutionEvent) -> None:
        if event.task_id is None:
            return
        task = plan.tasks.get(event.task_id)
        name = task.name if task else event.task_id
        if event.type == ExecutionEventType.TASK_STARTED:
            console.print(f"  [info]>[/] {name} [muted]on {event.payload.get('executor_id')}[/]")
        elif event.type == ExecutionEventType.TASK_COMPLETED:
            console.print(f"  {styled_status(TaskStatus.COMPLETED)} {name}")
        elif event.type == ExecutionEventType.TASK_FAILED:
            console.print(
                f"  {styled_status(TaskStatus.FAILED)} {name} "
                f"[muted]{event.payload.get('error', '')}[/]"
            )

    return _print


async def _run_goal(
    config: TaskloomConfig,
    goal: str,
    *,
    name: str,
    capabilities: tuple[str, ...],
    max_depth: int | None,
    parallel: int | None,
    timeout: float | None,
    plan_only: bool,
) -> bool:
    orchestrator = Orchestrator.from_config(config, adapter=LiteLLMAdapter())

    planning_overrides: dict[str, object] = {"required_capabilities": capabilities}
    if max_depth is not None:
        planning_overrides["max_depth"] = max_depth
    try:
        async with async_spinner("Planning..."):
            plan = await orchestrator.create_plan(
                name, goal, orchestrator.planning_options(**planning_overrides)
            )
    except ValidationError as e:
        print_error(e.message, title="Invalid Goal")
        raise typer.Exit(1) from e

    console.print(plan_tree(plan))
    if plan_only:
        return True
    if not orchestrator.list_executors():
        print_warning("No executors configured. Add some under `executors` in config.yaml.")
        return False

    execution_overrides: dict[str, object] = {}
    if parallel is not None:
        execution_overrides["parallel_limit"] = parallel
    if timeout is not None:
        execution_overrides["timeout_seconds"] = timeout

    subscription = orchestrator.subscribe(_event_printer(plan))
    try:
        result = await orchestrator.execute_plan(
            plan.id, orchestrator.execution_options(**execution_overrides)
        )
    except ExecutorConfigurationError as e:
        print_error(e.message, title="Executor Configuration Error")
        raise typer.Exit(1) from e
    finally:
        orchestrator.unsubscribe(subscription)

    console.print(results_table(plan, result))
    summary = (
        f"{result.completed_tasks}/{result.total_tasks} tasks completed, "
        f"{result.failed_tasks} failed in {result.execution_time_ms / 1000:.1f}s"
    )
    if result.timed_out:
        print_warning(summary, title="Timed Out")
        return False
    if result.status == TaskStatus.COMPLETED:
        print_success(summary, title="Plan Completed")
        return True
    print_error(summary, title=f"Plan {result.status.value}")
    return False


def run(
    goal: Annotated[str, typer.Argument(help="Goal to plan and execute.")],
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Plan name (defaults to the goal's first line)."),
    ] = None,
    capability: Annotated[
        list[str] | None,
        typer.Option(
            "--capability",
            "-k",
            help="Capability of the root task; subtasks inherit it. Repeatable.",
        ),
    ] = None,
    max_depth: Annotated[
        int | None, typer.Option("--max-depth", help="Decomposition depth.", min=0)
    ] = None,
    parallel: Annotated[
        int | None,
        typer.Option("--parallel", "-p", help="Maximum tasks running at once.", min=1),
    ] = None,
    timeout: Annotated[
        float | None, typer.Option("--timeout", help="Plan timeout in seconds.")
    ] = None,
    plan_only: Annotated[
        bool, typer.Option("--plan-only", help="Print the plan without executing it.")
    ] = False,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config.yaml.", dir_okay=False),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logs.")] = False,
) -> None:
    """Plan GOAL into a task graph and execute it.

    Examples:

        taskloom run "Write a market report on solar panels"

        taskloom run "Review this design" -k code-review --parallel 1
    """
    config = load_cli_config(config_file)
    setup_logging(config, verbose=verbose)

    capabilities = tuple(capability) if capability else _default_capabilities(config)
    succeeded = asyncio.run(
        _run_goal(
            config,
            goal,
            name=name or _plan_name(goal),
            capabilities=capabilities,
            max_depth=max_depth,
            parallel=parallel,
            timeout=timeout,
            plan_only=plan_only,
        )
    )
    if not succeeded:
        raise typer.Exit(1)


__all__ = ["run"]
