"""Shared fixtures: scripted decomposers, function executors and a fake LLM adapter.

No test talks to a real LLM provider.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from taskloom.agents import FunctionExecutor, TaskInput
from taskloom.core.errors import DecompositionError, ProviderError
from taskloom.core.types import Result
from taskloom.execution import ExecutionOptions
from taskloom.providers.base import CompletionConfig, CompletionResponse, Message, UsageInfo
from taskloom.tasks import DecompositionRequest, SubtaskSpec

# =============================================================================
# Decomposition
# =============================================================================


@dataclass
class ScriptedDecomposer:
    """TaskDecomposer returning canned subtasks keyed by task name.

    Names missing from ``script`` decompose to nothing (the task stays a
    leaf); names in ``failures`` return a DecompositionError.
    """

    script: dict[str, list[SubtaskSpec]] = field(default_factory=dict)
    failures: set[str] = field(default_factory=set)
    requests: list[DecompositionRequest] = field(default_factory=list)

    async def decompose(
        self, request: DecompositionRequest
    ) -> Result[list[SubtaskSpec], DecompositionError]:
        self.requests.append(request)
        if request.name in self.failures:
            return Result.err(
                DecompositionError("scripted failure", task_id=request.task_id)
            )
        return Result.ok(list(self.script.get(request.name, [])))


@pytest.fixture
def scripted_decomposer() -> Callable[..., ScriptedDecomposer]:
    """Factory for ScriptedDecomposer."""
    return ScriptedDecomposer


# =============================================================================
# Executors
# =============================================================================


@dataclass
class ConcurrencyProbe:
    """Tracks how many handlers run at the same time."""

    running: int = 0
    peak: int = 0
    order: list[str] = field(default_factory=list)


@pytest.fixture
def probe() -> ConcurrencyProbe:
    return ConcurrencyProbe()


@pytest.fixture
def make_executor(probe: ConcurrencyProbe) -> Callable[..., FunctionExecutor]:
    """Factory for FunctionExecutors.

    The handler returns ``result`` (default "<id>:<task name>"), raises
    ``error`` for the first ``fail_times`` attempts (every attempt if
    ``fail_times`` is None), and sleeps ``delay`` seconds first.
    """

    def _make(
        executor_id: str,
        capabilities: list[str],
        *,
        result: Any = None,
        error: Exception | None = None,
        fail_times: int | None = None,
        delay: float = 0.0,
        description: str = "",
    ) -> FunctionExecutor:
        calls = {"count": 0}

        async def handler(task_input: TaskInput) -> Any:
            calls["count"] += 1
            probe.running += 1
            probe.peak = max(probe.peak, probe.running)
            probe.order.append(task_input.name)
            try:
                if delay:
                    await asyncio.sleep(delay)
                if error is not None and (fail_times is None or calls["count"] <= fail_times):
                    raise error
                return result if result is not None else f"{executor_id}:{task_input.name}"
            finally:
                probe.running -= 1

        return FunctionExecutor(executor_id, capabilities, handler, description=description)

    return _make


@pytest.fixture
def fast_options() -> ExecutionOptions:
    """Execution options without retry delays."""
    return ExecutionOptions(
        parallel_limit=3,
        timeout_seconds=5.0,
        retry_count=2,
        retry_delay_seconds=0.0,
    )


# =============================================================================
# LLM
# =============================================================================


@dataclass
class FakeLLMAdapter:
    """LLMAdapter answering from a queue of canned replies.

    A reply may be a string (returned as content) or a ProviderError
    (returned as Result.err). When the queue is empty ``default`` is used.
    """

    replies: list[str | ProviderError] = field(default_factory=list)
    default: str = "[]"
    calls: list[tuple[list[Message], CompletionConfig]] = field(default_factory=list)

    async def complete(
        self,
        messages: list[Message],
        config: CompletionConfig,
    ) -> Result[CompletionResponse, ProviderError]:
        self.calls.append((messages, config))
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, ProviderError):
            return Result.err(reply)
        return Result.ok(
            CompletionResponse(
                content=reply,
                model=config.model,
                usage=UsageInfo(prompt_tokens=5, completion_tokens=7, total_tokens=12),
            )
        )


@pytest.fixture
def fake_adapter() -> Callable[..., FakeLLMAdapter]:
    """Factory for FakeLLMAdapter."""
    return FakeLLMAdapter
