"""Abstract LLM interface for docledger."""

from __future__ import annotations

from abc import ABC, abstractmethod

from docledger.llm.models import LLMConfig, LLMResponse


class LLMProvider(ABC):
    """Provider-agnostic interface for one-shot summary generation.

    Adapters must raise the docledger error taxonomy (``RateLimited``,
    ``TransientServiceError``, ``TerminalRequestError``) rather than SDK
    exceptions, so the retry executor can classify failures.
    """

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    @abstractmethod
    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a complete response (one-shot)."""
        ...


def parse_retry_after(headers: object) -> float | None:
    """Read a ``retry-after`` header value in seconds, if present and numeric."""
    getter = getattr(headers, "get", None)
    if getter is None:
        return None
    value = getter("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def is_retryable_status(status_code: int | None) -> bool:
    """Server errors, request timeouts and conflicts are worth retrying."""
    if status_code is None:
        return False
    return status_code >= 500 or status_code in (408, 409)
