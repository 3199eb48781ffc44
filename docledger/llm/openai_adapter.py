"""OpenAI adapter for docledger."""

from __future__ import annotations

from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError

from docledger.errors import LedgerError, RateLimited, TerminalRequestError, TransientServiceError
from docledger.llm.base import LLMProvider, is_retryable_status, parse_retry_after
from docledger.llm.models import LLMConfig, LLMResponse, TokenUsage


def translate_error(e: APIError) -> LedgerError:
    """Map an OpenAI SDK error onto the docledger taxonomy."""
    if isinstance(e, RateLimitError):
        return RateLimited(
            f"openai rate limited: {e}",
            retry_after=parse_retry_after(getattr(e.response, "headers", None)),
        )
    if isinstance(e, APIConnectionError):
        return TransientServiceError(f"openai connection failed: {e}", retryable=True)
    if isinstance(e, APIStatusError):
        if is_retryable_status(e.status_code):
            return TransientServiceError(
                f"openai server error: {e}", retryable=True, status_code=e.status_code
            )
        return TerminalRequestError(f"openai request rejected ({e.status_code}): {e}")
    return TerminalRequestError(f"openai request failed: {e}")


class OpenAIProvider(LLMProvider):
    """OpenAI adapter using the async SDK."""

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        self._client = AsyncOpenAI(
            api_key=config.api_key,  # falls back to OPENAI_API_KEY env var
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
            response = await self._client.chat.completions.create(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except APIError as e:
            raise translate_error(e) from e

        if not response.choices:
            raise TerminalRequestError("No choices in OpenAI response")
        choice = response.choices[0]
        if not response.usage:
            raise TerminalRequestError("No usage data in OpenAI response")
        return LLMResponse(
            content=choice.message.content or "",
            usage=TokenUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            ),
            model=response.model,
        )
