"""LLM provider abstraction, retry executor and summary processor."""

import os

from docledger.config.models import LLMSettings
from docledger.llm.base import LLMProvider
from docledger.llm.claude import ClaudeProvider
from docledger.llm.models import LLMConfig, LLMResponse, TokenUsage
from docledger.llm.openai_adapter import OpenAIProvider
from docledger.llm.retry import RetryExecutor, RetryPolicy, should_retry
from docledger.llm.summarizer import SummaryProcessor

_PROVIDER_MAP: dict[str, type[LLMProvider]] = {
    "anthropic": ClaudeProvider,
    "openai": OpenAIProvider,
}


def create_llm_provider(settings: LLMSettings) -> LLMProvider:
    """Create an LLM provider from app-level settings.

    Resolves the API key from the env var named in ``settings.api_key_env``.
    """
    cls = _PROVIDER_MAP.get(settings.provider)
    if cls is None:
        raise ValueError(
            f"Unsupported LLM provider: {settings.provider!r}. "
            f"Supported: {', '.join(_PROVIDER_MAP)}"
        )

    api_key = os.environ.get(settings.api_key_env)
    if not api_key:
        raise ValueError(
            f"Missing API key: set environment variable {settings.api_key_env!r}"
        )
    return cls(
        LLMConfig(
            provider=settings.provider,
            model=settings.model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.timeout,
            api_key=api_key,
            base_url=settings.base_url,
        )
    )


__all__ = [
    "ClaudeProvider",
    "LLMConfig",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "RetryExecutor",
    "RetryPolicy",
    "SummaryProcessor",
    "TokenUsage",
    "create_llm_provider",
    "should_retry",
]
