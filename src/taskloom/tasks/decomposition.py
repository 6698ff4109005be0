"""Task decomposition: turning one task into subtasks.

The planner talks to a TaskDecomposer. LLMDecomposer asks a language model
for a JSON array of subtasks; an empty array means the task is atomic.

Expected LLM output:

    [
      {"name": "collect-data", "description": "...", "priority": 7,
       "dependencies": [], "required_capabilities": ["research"]},
      {"name": "write-report", "description": "...", "priority": 5,
       "dependencies": ["collect-data"], "required_capabilities": ["writing"]}
    ]

Dependencies reference sibling names; the planner resolves them to ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import re
from typing import Any, Protocol

from taskloom.config.models import DEFAULT_MODEL
from taskloom.core.errors import DecompositionError, ProviderError
from taskloom.core.types import Result
from taskloom.observability.logging import get_logger
from taskloom.providers.base import CompletionConfig, LLMAdapter, Message, MessageRole
from taskloom.tasks.models import DEFAULT_PRIORITY

log = get_logger(__name__)

MIN_PRIORITY = 1
MAX_PRIORITY = 10

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_ARRAY_SPAN_RE = re.compile(r"\[.*\]", re.DOTALL)


@dataclass(frozen=True, slots=True)
class SubtaskSpec:
    """A subtask proposed by a decomposer.

    Attributes:
        name: Short name, referenced by sibling dependencies.
        description: What the subtask does.
        priority: 1..10, higher first.
        dependencies: Names of sibling subtasks that must finish first.
        required_capabilities: Capabilities needed to execute it.
    """

    name: str
    description: str
    priority: int = DEFAULT_PRIORITY
    dependencies: tuple[str, ...] = ()
    required_capabilities: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DecompositionRequest:
    """Everything a decomposer may use to split a task."""

    task_id: str
    name: str
    description: str
    depth: int
    max_depth: int
    max_subtasks: int
    priority: int = DEFAULT_PRIORITY
    available_capabilities: tuple[str, ...] = ()
    context: dict[str, Any] = field(default_factory=dict)


class TaskDecomposer(Protocol):
    """Splits a task into subtasks.

    Failures are returned, not raised; the planner keeps the task as a leaf.
    An Ok with an empty list means the task is atomic.
    """

    async def decompose(
        self, request: DecompositionRequest
    ) -> Result[list[SubtaskSpec], DecompositionError | ProviderError]: ...


def extract_json_array(text: str) -> list[Any] | None:
    """Find a JSON array in LLM output.

    Tries, in order: the whole text, fenced code blocks, the outermost
    ``[...]`` span. An object with a ``subtasks`` list is accepted too.
    """
    candidates = [text.strip()]
    candidates += [block.strip() for block in _FENCED_BLOCK_RE.findall(text)]
    span = _ARRAY_SPAN_RE.search(text)
    if span:
        candidates.append(span.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict) and isinstance(parsed.get("subtasks"), list):
            return list(parsed["subtasks"])
    return None


def _coerce_priority(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        priority = int(value)
    except (TypeError, ValueError):
        return default
    return max(MIN_PRIORITY, min(MAX_PRIORITY, priority))


def _string_list(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())


def parse_subtasks(
    text: str,
    *,
    default_priority: int = DEFAULT_PRIORITY,
    task_id: str | None = None,
) -> Result[list[SubtaskSpec], DecompositionError]:
    """Parse decomposer output into subtask specs.

    Items without a name or description are skipped. Priorities are coerced
    into 1..10, falling back to ``default_priority``.

    Returns:
        Ok with the specs (possibly empty for an atomic task), or Err when no
        array can be found or every item is unusable.
    """
    items = extract_json_array(text)
    if items is None:
        log.warning(
            "decomposition.parse_failed",
            task_id=task_id,
            response_preview=text[:200],
        )
        return Result.err(
            DecompositionError(
                "Failed to parse decomposition response",
                task_id=task_id,
                error_type="parse_failure",
                details={"response_preview": text[:200]},
            )
        )

    specs: list[SubtaskSpec] = []
    skipped = 0
    for item in items:
        if not isinstance(item, dict):
            skipped += 1
            continue
        name = str(item.get("name") or item.get("title") or "").strip()
        description = str(item.get("description") or "").strip()
        if not name or not description:
            skipped += 1
            continue
        specs.append(
            SubtaskSpec(
                name=name,
                description=description,
                priority=_coerce_priority(item.get("priority"), default_priority),
                dependencies=_string_list(item.get("dependencies", [])),
                required_capabilities=_string_list(
                    item.get("required_capabilities", item.get("capabilities", []))
                ),
            )
        )

    if skipped:
        log.warning("decomposition.items_skipped", task_id=task_id, skipped=skipped)
    if items and not specs:
        return Result.err(
            DecompositionError(
                "Decomposition response contained no usable subtasks",
                task_id=task_id,
                error_type="no_valid_subtasks",
            )
        )
    return Result.ok(specs)


DECOMPOSITION_SYSTEM_PROMPT = """You are a planning assistant that breaks work into subtasks.

Given a task, either split it into at most {max_subtasks} smaller subtasks or declare it atomic.

Respond with ONLY a JSON array. Each element:
{{"name": "short-kebab-name", "description": "specific, actionable description",
  "priority": 1-10 (higher is more urgent), "dependencies": ["name of an earlier sibling"],
  "required_capabilities": ["capability"]}}

Rules:
- Return [] if the task is small enough to be done in one step.
- Dependencies may only name other subtasks in the same array.
- Never repeat the parent task as a subtask.
- Choose required_capabilities from the available capabilities when possible."""

DECOMPOSITION_USER_TEMPLATE = """Task: {name}
Description: {description}
Depth: {depth} of {max_depth}
Available capabilities: {capabilities}
Context: {context}"""


class LLMDecomposer:
    """TaskDecomposer backed by an LLMAdapter."""

    def __init__(
        self,
        adapter: LLMAdapter,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> None:
        self._adapter = adapter
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    def _build_messages(self, request: DecompositionRequest) -> list[Message]:
        context = json.dumps(request.context, default=str) if request.context else "none"
        return [
            Message(
                role=MessageRole.SYSTEM,
                content=DECOMPOSITION_SYSTEM_PROMPT.format(max_subtasks=request.max_subtasks),
            ),
            Message(
                role=MessageRole.USER,
                content=DECOMPOSITION_USER_TEMPLATE.format(
                    name=request.name,
                    description=request.description,
                    depth=request.depth,
                    max_depth=request.max_depth,
                    capabilities=", ".join(request.available_capabilities) or "unspecified",
                    context=context,
                ),
            ),
        ]

    async def decompose(
        self, request: DecompositionRequest
    ) -> Result[list[SubtaskSpec], DecompositionError | ProviderError]:
        log.debug(
            "decomposition.started",
            task_id=request.task_id,
            depth=request.depth,
        )
        llm_result = await self._adapter.complete(
            self._build_messages(request),
            CompletionConfig(
                model=self._model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            ),
        )
        if llm_result.is_err:
            log.warning(
                "decomposition.llm_failed",
                task_id=request.task_id,
                error=str(llm_result.error),
            )
            return Result.err(llm_result.error)

        parsed = parse_subtasks(
            llm_result.value.content,
            default_priority=request.priority,
            task_id=request.task_id,
        )
        if parsed.is_err:
            return Result.err(parsed.error)

        specs = parsed.value[: request.max_subtasks]
        log.debug(
            "decomposition.completed",
            task_id=request.task_id,
            subtask_count=len(specs),
        )
        return Result.ok(specs)
