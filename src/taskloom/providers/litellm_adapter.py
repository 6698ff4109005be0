"""LiteLLM adapter: one LLMAdapter for every provider LiteLLM can route to."""

import os
from typing import Any

import litellm
import stamina

from taskloom.core.errors import ProviderError
from taskloom.core.security import MAX_LLM_RESPONSE_LENGTH, InputValidator
from taskloom.core.types import Result
from taskloom.observability.logging import get_logger
from taskloom.providers.base import CompletionConfig, CompletionResponse, Message, UsageInfo

log = get_logger(__name__)

RETRIABLE_EXCEPTIONS = (
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.Timeout,
    litellm.APIConnectionError,
)

_PROVIDER_KEY_ENV = {
    "openrouter": "OPENROUTER_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


def extract_provider(model: str) -> str:
    """Return the provider part of a model string ('openai/gpt-4o' -> 'openai')."""
    if "/" in model:
        return model.split("/")[0]
    if model.startswith("gpt"):
        return "openai"
    if model.startswith("claude"):
        return "anthropic"
    return "unknown"


class LiteLLMAdapter:
    """LLMAdapter backed by ``litellm.acompletion``.

    Transient errors (rate limits, timeouts, connection failures) are retried
    with stamina; everything else becomes ``Result.err(ProviderError)``.

    API keys are taken from the constructor, or else from the provider's
    environment variable (OPENAI_API_KEY, ANTHROPIC_API_KEY, OPENROUTER_API_KEY).

    Example:
        adapter = LiteLLMAdapter()
        result = await adapter.complete(
            [Message(role=MessageRole.USER, content="Hello!")],
            CompletionConfig(model="openai/gpt-4o-mini"),
        )
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 3,
    ) -> None:
        self._api_key = api_key
        self._api_base = api_base
        self._timeout = timeout
        self._max_retries = max_retries

    def _api_key_for(self, model: str) -> str | None:
        if self._api_key:
            return self._api_key
        env_var = _PROVIDER_KEY_ENV.get(extract_provider(model), "OPENROUTER_API_KEY")
        return os.environ.get(env_var)

    def _build_completion_kwargs(
        self,
        messages: list[Message],
        config: CompletionConfig,
    ) -> dict[str, Any]:
        optional = {
            "stop": config.stop,
            "api_key": self._api_key_for(config.model),
            "api_base": self._api_base,
        }
        return {
            "model": config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "timeout": self._timeout,
            **{key: value for key, value in optional.items() if value},
        }

    def _to_completion(self, response: Any, config: CompletionConfig) -> CompletionResponse:
        choice = response.choices[0]
        content = choice.message.content or ""
        if not InputValidator.validate_llm_response(content)[0]:
            log.warning(
                "llm.response.truncated",
                model=config.model,
                original_length=len(content),
                max_length=MAX_LLM_RESPONSE_LENGTH,
            )
            content = content[:MAX_LLM_RESPONSE_LENGTH]

        usage = response.usage
        return CompletionResponse(
            content=content,
            model=response.model or config.model,
            usage=UsageInfo(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            ),
            finish_reason=choice.finish_reason or "stop",
            raw_response=response.model_dump() if hasattr(response, "model_dump") else {},
        )

    def _to_provider_error(self, error: Exception, config: CompletionConfig) -> ProviderError:
        provider = extract_provider(config.model)
        if isinstance(error, RETRIABLE_EXCEPTIONS):
            log.warning(
                "llm.request.retries_exhausted",
                model=config.model,
                attempts=self._max_retries,
                error=str(error),
            )
            return ProviderError.from_exception(error, provider=provider)
        if isinstance(error, litellm.AuthenticationError):
            log.warning("llm.request.auth_failed", model=config.model)
            return ProviderError(
                "Authentication failed - check API key",
                provider=provider,
                status_code=401,
                details={"original_exception": type(error).__name__},
            )
        if isinstance(error, litellm.BadRequestError | litellm.APIError):
            log.warning(
                "llm.request.rejected",
                model=config.model,
                status_code=getattr(error, "status_code", None),
                error=str(error),
            )
            return ProviderError.from_exception(error, provider=provider)

        log.exception("llm.request.unexpected_error", model=config.model)
        return ProviderError(
            f"Unexpected error: {error!s}",
            provider=provider,
            details={"original_exception": type(error).__name__},
        )

    async def complete(
        self,
        messages: list[Message],
        config: CompletionConfig,
    ) -> Result[CompletionResponse, ProviderError]:
        """Run a completion, retrying transient failures.

        Returns:
            Result containing the completion or a ProviderError.
        """
        kwargs = self._build_completion_kwargs(messages, config)
        log.debug("llm.request.started", model=config.model, message_count=len(messages))
        try:
            async for attempt in stamina.retry_context(
                on=RETRIABLE_EXCEPTIONS,
                attempts=self._max_retries,
                wait_initial=1.0,
                wait_max=10.0,
                wait_jitter=1.0,
            ):
                with attempt:
                    response = await litellm.acompletion(**kwargs)
        except Exception as e:
            return Result.err(self._to_provider_error(e, config))

        log.debug(
            "llm.request.completed",
            model=config.model,
            finish_reason=response.choices[0].finish_reason,
        )
        return Result.ok(self._to_completion(response, config))
