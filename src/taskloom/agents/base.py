"""Executor protocol and the data exchanged with executors.

An executor is anything with an id, a set of declared capabilities and an
async ``execute`` method. How it does the work is its own business; the
engine only routes tasks to it and records the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class ExecutorCapability:
    """A named capability an executor declares.

    Attributes:
        name: Routing key matched against a task's required capabilities.
        description: Free text; its words feed the capability similarity index.
    """

    name: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class TaskInput:
    """What an executor receives for one attempt at a task.

    Attributes:
        task_id: Task being executed.
        plan_id: Plan the task belongs to.
        name: Short task name.
        description: Full task description.
        required_capabilities: Capabilities the task was routed on.
        context: Plan context plus results of completed dependencies.
        attempt: 1-based attempt number.
    """

    task_id: str
    plan_id: str
    name: str
    description: str
    required_capabilities: tuple[str, ...] = ()
    context: dict[str, Any] = field(default_factory=dict)
    attempt: int = 1


@dataclass(frozen=True, slots=True)
class ExecutorOutput:
    """Result of a successful execution.

    Attributes:
        output: The task result stored on the task.
        metadata: Executor-specific details (model, token usage, ...).
    """

    output: Any
    metadata: dict[str, Any] = field(default_factory=dict)


class Executor(Protocol):
    """Protocol every executor satisfies.

    ``execute`` raises to signal failure; the engine turns the exception
    into a task failure and never lets it abort other tasks.
    """

    @property
    def id(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def capabilities(self) -> tuple[ExecutorCapability, ...]: ...

    async def execute(self, task_input: TaskInput) -> ExecutorOutput: ...


def capability_names(executor: Executor) -> list[str]:
    """Return the capability names an executor declares, in declaration order."""
    return [capability.name for capability in executor.capabilities]
