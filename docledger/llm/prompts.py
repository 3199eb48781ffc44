"""Prompt builders for file and directory summaries and their audience rewrites."""

from __future__ import annotations

from collections.abc import Mapping

SYSTEM_PROMPT = (
    "You write concise engineering documentation. Describe what the code does, "
    "its main responsibilities and how it fits into the surrounding project. "
    "Use plain Markdown, no preamble."
)

# Characters of file text sent to the model
MAX_FILE_CHARS = 60_000


def file_prompt(path: str, content: str) -> str:
    if len(content) > MAX_FILE_CHARS:
        content = content[:MAX_FILE_CHARS] + "\n... [truncated]"
    return f"Summarize the file `{path}`.\n\n```\n{content}\n```"


def directory_prompt(path: str, child_summaries: Mapping[str, str]) -> str:
    listing = "\n\n".join(f"### {child}\n{summary}" for child, summary in sorted(child_summaries.items()))
    label = "the project root" if path == "." else f"the directory `{path}`"
    return (
        f"Summarize {label} from the summaries of its contents below. "
        f"Explain what the directory is for and how its parts relate.\n\n{listing}"
    )


def product_prompt(engineering_summary: str) -> str:
    return (
        "Rewrite the engineering summary below for a product manager. Cover the "
        "user-facing capabilities and what the component enables, not how it is "
        "implemented. Keep it short.\n\n"
        f"{engineering_summary}"
    )


def executive_prompt(engineering_summary: str) -> str:
    return (
        "Rewrite the engineering summary below for an executive in two or three "
        "sentences. State the business purpose and any risk worth knowing about.\n\n"
        f"{engineering_summary}"
    )


DERIVED_PROMPTS = {
    "product": product_prompt,
    "executive": executive_prompt,
}
