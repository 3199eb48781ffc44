"""Anthropic Claude adapter for docledger."""

from __future__ import annotations

from anthropic import APIConnectionError, APIError, APIStatusError, AsyncAnthropic, RateLimitError

from docledger.errors import LedgerError, RateLimited, TerminalRequestError, TransientServiceError
from docledger.llm.base import LLMProvider, is_retryable_status, parse_retry_after
from docledger.llm.models import LLMConfig, LLMResponse, TokenUsage


def translate_error(e: APIError) -> LedgerError:
    """Map an Anthropic SDK error onto the docledger taxonomy."""
    if isinstance(e, RateLimitError):
        return RateLimited(
            f"claude rate limited: {e}",
            retry_after=parse_retry_after(getattr(e.response, "headers", None)),
        )
    if isinstance(e, APIConnectionError):
        # Includes APITimeoutError
        return TransientServiceError(f"claude connection failed: {e}", retryable=True)
    if isinstance(e, APIStatusError):
        if is_retryable_status(e.status_code):
            return TransientServiceError(
                f"claude server error: {e}", retryable=True, status_code=e.status_code
            )
        return TerminalRequestError(f"claude request rejected ({e.status_code}): {e}")
    return TerminalRequestError(f"claude request failed: {e}")


class ClaudeProvider(LLMProvider):
    """Claude adapter using the Anthropic async SDK.

    SDK retries are disabled; the retry executor owns backoff.
    """

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        self._client = AsyncAnthropic(
            api_key=config.api_key,  # falls back to ANTHROPIC_API_KEY env var
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0,
        )

    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        try:
            message = await self._client.messages.create(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except APIError as e:
            raise translate_error(e) from e

        if not message.content or not hasattr(message.content[0], "text"):
            raise TerminalRequestError("No text content in Claude response")
        return LLMResponse(
            content=message.content[0].text,
            usage=TokenUsage(
                input_tokens=message.usage.input_tokens,
                output_tokens=message.usage.output_tokens,
            ),
            model=message.model,
        )
