"""LLM provider adapters for Taskloom.

LiteLLMAdapter implements the LLMAdapter protocol for every provider LiteLLM
supports; the decomposer and LLM executors depend only on the protocol.
"""

from taskloom.providers.base import (
    CompletionConfig,
    CompletionResponse,
    LLMAdapter,
    Message,
    MessageRole,
    UsageInfo,
)
from taskloom.providers.litellm_adapter import LiteLLMAdapter

__all__ = [
    # Protocol
    "LLMAdapter",
    # Models
    "Message",
    "MessageRole",
    "CompletionConfig",
    "CompletionResponse",
    "UsageInfo",
    # Implementations
    "LiteLLMAdapter",
]
