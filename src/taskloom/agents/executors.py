"""Concrete executors.

FunctionExecutor wraps an async callable (tests, local tools);
LLMExecutor completes a task with a language model through an LLMAdapter.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
import json
from typing import Any

from taskloom.agents.base import ExecutorCapability, ExecutorOutput, TaskInput
from taskloom.config.models import ExecutorConfig
from taskloom.core.errors import ExecutionError
from taskloom.observability.logging import get_logger
from taskloom.providers.base import CompletionConfig, LLMAdapter, Message, MessageRole

log = get_logger(__name__)

TaskHandler = Callable[[TaskInput], Awaitable[Any]]


def _normalize_capabilities(
    capabilities: Iterable[ExecutorCapability | str],
) -> tuple[ExecutorCapability, ...]:
    normalized: list[ExecutorCapability] = []
    seen: set[str] = set()
    for capability in capabilities:
        if isinstance(capability, ExecutorCapability):
            item = capability
        else:
            item = ExecutorCapability(name=capability)
        if item.name in seen:
            continue
        seen.add(item.name)
        normalized.append(item)
    return tuple(normalized)


class FunctionExecutor:
    """Executor that delegates to an async function.

    The handler may return an ExecutorOutput or any plain value, which is
    wrapped as the output. Exceptions from the handler propagate.

    Example:
        async def summarize(task: TaskInput) -> str:
            return task.description[:80]

        executor = FunctionExecutor("summarizer", ["summarization"], summarize)
    """

    def __init__(
        self,
        executor_id: str,
        capabilities: Iterable[ExecutorCapability | str],
        handler: TaskHandler,
        *,
        description: str = "",
    ) -> None:
        self._id = executor_id
        self._capabilities = _normalize_capabilities(capabilities)
        self._handler = handler
        self._description = description

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return self._description

    @property
    def capabilities(self) -> tuple[ExecutorCapability, ...]:
        return self._capabilities

    async def execute(self, task_input: TaskInput) -> ExecutorOutput:
        result = await self._handler(task_input)
        if isinstance(result, ExecutorOutput):
            return result
        return ExecutorOutput(output=result)

    def __repr__(self) -> str:
        return f"FunctionExecutor(id={self._id!r})"


def _format_context(context: dict[str, Any]) -> str:
    if not context:
        return ""
    try:
        return json.dumps(context, indent=2, default=str)
    except (TypeError, ValueError):
        return str(context)


class LLMExecutor:
    """Executor that answers a task with one LLM completion.

    A failed completion raises ExecutionError, which the engine records as
    a task failure (and retries according to the execution options).
    """

    def __init__(
        self,
        executor_id: str,
        adapter: LLMAdapter,
        *,
        model: str,
        capabilities: Iterable[ExecutorCapability | str],
        system_prompt: str = "",
        description: str = "",
        temperature: float = 0.3,
        max_tokens: int = 2048,
    ) -> None:
        self._id = executor_id
        self._adapter = adapter
        self._model = model
        self._capabilities = _normalize_capabilities(capabilities)
        self._system_prompt = system_prompt
        self._description = description
        self._temperature = temperature
        self._max_tokens = max_tokens

    @classmethod
    def from_config(cls, config: ExecutorConfig, adapter: LLMAdapter) -> LLMExecutor:
        """Build an executor from its config.yaml declaration."""
        return cls(
            config.id,
            adapter,
            model=config.model,
            capabilities=[
                ExecutorCapability(name=c.name, description=c.description)
                for c in config.capabilities
            ],
            system_prompt=config.system_prompt,
            description=config.description,
            temperature=config.temperature,
        )

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return self._description

    @property
    def capabilities(self) -> tuple[ExecutorCapability, ...]:
        return self._capabilities

    @property
    def model(self) -> str:
        return self._model

    def _build_messages(self, task_input: TaskInput) -> list[Message]:
        parts = [f"Task: {task_input.name}", "", task_input.description]
        if task_input.required_capabilities:
            parts += ["", f"Focus: {', '.join(task_input.required_capabilities)}"]
        context = _format_context(task_input.context)
        if context:
            parts += ["", "Context:", context]

        messages = []
        if self._system_prompt:
            messages.append(Message(role=MessageRole.SYSTEM, content=self._system_prompt))
        messages.append(Message(role=MessageRole.USER, content="\n".join(parts)))
        return messages

    async def execute(self, task_input: TaskInput) -> ExecutorOutput:
        result = await self._adapter.complete(
            self._build_messages(task_input),
            CompletionConfig(
                model=self._model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            ),
        )
        if result.is_err:
            log.warning(
                "agents.llm_executor.completion_failed",
                executor_id=self._id,
                task_id=task_input.task_id,
                error=str(result.error),
            )
            raise ExecutionError(str(result.error), executor_id=self._id) from result.error

        response = result.value
        return ExecutorOutput(
            output=response.content,
            metadata={
                "model": response.model,
                "total_tokens": response.usage.total_tokens,
                "finish_reason": response.finish_reason,
            },
        )

    def __repr__(self) -> str:
        return f"LLMExecutor(id={self._id!r}, model={self._model!r})"
