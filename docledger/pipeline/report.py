"""Summary of a single processing run."""

from __future__ import annotations

from pydantic import BaseModel, Field

from docledger.staging.models import FailedEntry


class RunReport(BaseModel):
    """Outcome of ``Bundler.run()``."""

    root_hash: str = ""
    new: list[str] = Field(default_factory=list)
    changed: list[str] = Field(default_factory=list)
    unchanged: int = 0
    deleted: list[str] = Field(default_factory=list)
    processed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    deferred: list[str] = Field(default_factory=list)
    failed: list[FailedEntry] = Field(default_factory=list)
    resumed: bool = False
    resumed_paths: list[str] = Field(default_factory=list)
    aborted: bool = False
    bundles: int = 0
    calls: int = 0
    cost: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed and not self.aborted

    @property
    def up_to_date(self) -> bool:
        return not (self.new or self.changed or self.deleted)
