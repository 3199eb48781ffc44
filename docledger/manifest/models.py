"""Pydantic models for the on-disk manifest (the cache store)."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from docledger.merkle.models import Node

MANIFEST_VERSION = "1.0.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ManifestStats(BaseModel):
    """Aggregate counters over the manifest's nodes."""

    total_files: int = 0
    total_cost: float = 0.0


class Manifest(BaseModel):
    """Last successfully processed tree and its artifacts."""

    version: str = MANIFEST_VERSION
    generated_at: datetime = Field(default_factory=_utcnow)
    root_hash: str = ""
    nodes: dict[str, Node] = Field(default_factory=dict)
    stats: ManifestStats = Field(default_factory=ManifestStats)
