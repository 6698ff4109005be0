"""Tables and trees for plans, results and capabilities."""

from typing import Any

from rich.table import Table
from rich.tree import Tree

from taskloom.discovery.capabilities import CapabilityRecord
from taskloom.execution.executor import PlanExecutionResult
from taskloom.tasks.models import Task, TaskPlan, TaskStatus

_STATUS_STYLES = {
    TaskStatus.PENDING: "warning",
    TaskStatus.IN_PROGRESS: "info",
    TaskStatus.COMPLETED: "success",
    TaskStatus.FAILED: "error",
}


def status_style(status: TaskStatus | str) -> str:
    """Semantic style for a task status ("" for unknown values)."""
    try:
        return _STATUS_STYLES[TaskStatus(status)]
    except ValueError:
        return ""


def styled_status(status: TaskStatus | str) -> str:
    value = TaskStatus(status).value if isinstance(status, TaskStatus) else status
    style = status_style(status)
    return f"[{style}]{value}[/]" if style else value


def create_table(title: str | None = None, *, show_header: bool = True) -> Table:
    return Table(
        title=title,
        show_header=show_header,
        border_style="blue",
        header_style="bold cyan",
        row_styles=["", "dim"],
    )


def create_key_value_table(data: dict[str, Any], title: str | None = None) -> Table:
    """Two-column table of ``data``.

    Example:
        table = create_key_value_table({"parallel_limit": 3}, "execution")
    """
    table = create_table(title, show_header=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(str(key), str(value))
    return table


def _task_label(task: Task) -> str:
    parts = [f"[bold]{task.name}[/]", styled_status(task.status)]
    if task.required_capabilities:
        parts.append(f"[muted]({', '.join(task.required_capabilities)})[/]")
    if task.assigned_to:
        parts.append(f"-> [highlight]{task.assigned_to}[/]")
    return " ".join(parts)


def plan_tree(plan: TaskPlan) -> Tree:
    """Render the task hierarchy of a plan, with dependencies by name."""
    tree = Tree(f"[highlight]{plan.name}[/] [muted]{plan.id}[/]")
    stack: list[tuple[Tree, str]] = [(tree, task_id) for task_id in reversed(plan.root_task_ids)]
    branches: dict[str, Tree] = {}
    while stack:
        parent_branch, task_id = stack.pop()
        task = plan.tasks[task_id]
        label = _task_label(task)
        if task.dependencies:
            after = ", ".join(plan.tasks[d].name for d in task.dependencies if d in plan.tasks)
            label += f" [muted]after: {after}[/]"
        branches[task_id] = parent_branch.add(label)
        for child_id in reversed(task.subtask_ids):
            stack.append((branches[task_id], child_id))
    return tree


def _preview(value: Any, limit: int = 80) -> str:
    text = "" if value is None else str(value).replace("\n", " ")
    return text if len(text) <= limit else text[: limit - 3] + "..."


def results_table(plan: TaskPlan, result: PlanExecutionResult) -> Table:
    """One row per executed or failed leaf task."""
    table = create_table(f"Results: {plan.name}")
    table.add_column("Task", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Executor")
    table.add_column("Attempts", justify="right")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Output / Error")

    for task in plan.leaf_tasks():
        task_result = result.results.get(task.id)
        detail = task.failure_reason if task.status == TaskStatus.FAILED else task.result
        table.add_row(
            task.name,
            styled_status(task.status),
            task.assigned_to or "-",
            str(task_result.attempts) if task_result else "-",
            f"{task_result.execution_time_ms:.0f}" if task_result else "-",
            _preview(detail),
        )
    return table


def capabilities_table(records: list[CapabilityRecord]) -> Table:
    table = create_table("Capabilities")
    table.add_column("Capability", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Providers")
    table.add_column("Similar")
    for record in records:
        similar = ", ".join(f"{name} ({score:.2f})" for name, score in record.similar)
        table.add_row(
            record.name,
            record.description or "-",
            ", ".join(sorted(record.providers)) or "[warning]none[/]",
            similar or "-",
        )
    return table


__all__ = [
    "capabilities_table",
    "create_key_value_table",
    "create_table",
    "plan_tree",
    "results_table",
    "status_style",
    "styled_status",
]
