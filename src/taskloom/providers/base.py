"""LLM provider protocol and message models.

The decomposer and LLM-backed executors talk to language models only through
the LLMAdapter protocol, so tests can substitute a scripted adapter.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from taskloom.core.errors import ProviderError
from taskloom.core.types import Result


class MessageRole(StrEnum):
    """Role of a message in the conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """A single chat message."""

    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, str]:
        """Return the ``{"role", "content"}`` form LLM APIs expect."""
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True, slots=True)
class CompletionConfig:
    """Parameters for a completion request.

    Attributes:
        model: LiteLLM model string (e.g. 'openai/gpt-4o-mini').
        temperature: Sampling temperature.
        max_tokens: Maximum tokens to generate.
        stop: Optional stop sequences.
    """

    model: str
    temperature: float = 0.7
    max_tokens: int = 4096
    stop: list[str] | None = None


@dataclass(frozen=True, slots=True)
class UsageInfo:
    """Token usage reported for a completion."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True, slots=True)
class CompletionResponse:
    """Text returned by a completion request, with usage accounting."""

    content: str
    model: str
    usage: UsageInfo
    finish_reason: str = "stop"
    raw_response: dict[str, object] = field(default_factory=dict)


class LLMAdapter(Protocol):
    """Protocol for LLM provider adapters.

    Implementations retry transient failures themselves and report every
    expected failure as ``Result.err(ProviderError)``.
    """

    async def complete(
        self,
        messages: list[Message],
        config: CompletionConfig,
    ) -> Result[CompletionResponse, ProviderError]:
        """Run one completion request."""
        ...
