"""Data models for the Merkle tree subsystem."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ROOT_PATH = "."


class Node(BaseModel):
    """A file or directory in the tracked tree, plus its cached artifact."""

    path: str
    kind: Literal["file", "directory"]
    content_hash: str | None = None
    children_hash: str | None = None
    children: list[str] = Field(default_factory=list)
    artifact: Any = None
    cost: float = 0.0
    last_processed_at: datetime | None = None

    @property
    def fingerprint(self) -> str:
        if self.kind == "file":
            return self.content_hash or ""
        return self.children_hash or ""

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @property
    def has_artifact(self) -> bool:
        return self.artifact is not None


@dataclass(frozen=True)
class ChangeSet:
    """Classification of every current and cached path."""

    new: tuple[Node, ...] = ()
    changed: tuple[Node, ...] = ()
    unchanged: tuple[Node, ...] = ()
    deleted: tuple[str, ...] = ()

    @property
    def pending(self) -> tuple[Node, ...]:
        """Nodes that need a fresh artifact."""
        return self.new + self.changed

    @property
    def has_changes(self) -> bool:
        return bool(self.new or self.changed or self.deleted)
