"""Pydantic models for the staging log."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

STAGING_VERSION = "1.0.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CompletedEntry(BaseModel):
    """A path whose artifact was produced during the run."""

    path: str
    fingerprint: str
    artifact: Any = None
    cost: float = 0.0
    completed_at: datetime = Field(default_factory=_utcnow)


class FailedEntry(BaseModel):
    """A path that could not be processed, with cumulative attempt count."""

    path: str
    fingerprint: str
    reason: str
    retry_count: int = 0
    rate_limited: bool = False
    failed_at: datetime = Field(default_factory=_utcnow)


class StagingLog(BaseModel):
    """Outcomes of an in-progress run, keyed to the tree it started from."""

    version: str = STAGING_VERSION
    started_at: datetime = Field(default_factory=_utcnow)
    root_hash: str
    completed: list[CompletedEntry] = Field(default_factory=list)
    failed: list[FailedEntry] = Field(default_factory=list)

    def completed_paths(self) -> set[str]:
        return {e.path for e in self.completed}

    def failed_paths(self) -> set[str]:
        return {e.path for e in self.failed}

    def total_cost(self) -> float:
        return sum(e.cost for e in self.completed)
