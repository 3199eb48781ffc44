"""Processor that summarizes files and directories with an LLM provider.

Each node gets an engineering summary first, from the file text or from the
children's engineering summaries. The product and executive summaries are
then rewritten from it in parallel.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from docledger.config.models import AUDIENCES
from docledger.errors import IOFailure
from docledger.llm.base import LLMProvider
from docledger.llm.models import LLMResponse
from docledger.llm.prompts import DERIVED_PROMPTS, SYSTEM_PROMPT, directory_prompt, file_prompt
from docledger.merkle.models import Node
from docledger.pipeline.processor import ProcessContext, ProcessResult

logger = logging.getLogger(__name__)


def summary_text(artifact: Any, audience: str = "engineering") -> str | None:
    """Pull one audience's summary string out of an artifact."""
    if isinstance(artifact, dict):
        text = artifact.get(audience)
        if text is None and audience == "engineering":
            text = artifact.get("summary")
        return text if isinstance(text, str) else None
    if isinstance(artifact, str):
        return artifact
    return None


class SummaryProcessor:
    """Files are summarized from their text, directories from their children's summaries."""

    def __init__(
        self,
        provider: LLMProvider,
        max_tokens: int | None = None,
        audiences: Sequence[str] = AUDIENCES,
    ) -> None:
        unknown = set(audiences) - set(AUDIENCES)
        if unknown:
            raise ValueError(f"Unknown audiences: {', '.join(sorted(unknown))}")
        self.provider = provider
        self.max_tokens = max_tokens
        self.derived = [a for a in AUDIENCES if a in audiences and a in DERIVED_PROMPTS]

    async def process(self, node: Node, context: ProcessContext) -> ProcessResult:
        if node.kind == "file":
            user = file_prompt(node.path, self._read(context, node))
        else:
            summaries: dict[str, str] = {}
            for child, artifact in context.children.items():
                text = summary_text(artifact)
                if text is not None:
                    summaries[child] = text
            user = directory_prompt(node.path, summaries)

        engineering = await self._generate(user)
        responses = await asyncio.gather(
            *(self._generate(DERIVED_PROMPTS[a](engineering.content)) for a in self.derived)
        )

        artifact: dict[str, Any] = {"engineering": engineering.content}
        tokens = engineering.usage.total
        for audience, response in zip(self.derived, responses):
            artifact[audience] = response.content
            tokens += response.usage.total
        artifact["model"] = engineering.model
        artifact["tokens"] = tokens
        logger.debug("Summarized %s for %d audience(s) (%d tokens)", node.path, 1 + len(self.derived), tokens)
        return ProcessResult(artifact=artifact, cost=float(tokens))

    async def _generate(self, user: str) -> LLMResponse:
        return await self.provider.generate(SYSTEM_PROMPT, user, max_tokens=self.max_tokens)

    @staticmethod
    def _read(context: ProcessContext, node: Node) -> str:
        path = context.root / node.path
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise IOFailure(node.path, e) from e
