"""Crash-recoverable staging log for in-progress runs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from docledger._fs import atomic_write_text
from docledger.errors import IOFailure
from docledger.staging.models import CompletedEntry, FailedEntry, StagingLog

logger = logging.getLogger(__name__)


class StagingStore:
    """Owns the staging log file and its in-memory copy.

    Every mutation rewrites the whole file through a temp file + rename, so
    ``load()`` sees either the last complete state or nothing.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.log: StagingLog | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, root_hash: str) -> StagingLog:
        """Start a new, empty log for a run over *root_hash*."""
        self.log = StagingLog(root_hash=root_hash)
        self.save()
        return self.log

    def load(self) -> StagingLog | None:
        """Read the log from disk; None when missing or unreadable."""
        if not self.path.is_file():
            return None
        try:
            log = StagingLog.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Failed to load staging log %s: %s", self.path, e)
            return None
        self.log = log
        return log

    def save(self) -> None:
        atomic_write_text(self.path, self._require().model_dump_json(indent=2))

    def clear(self) -> None:
        """Delete the log file. Raises ``IOFailure`` if it cannot be removed."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise IOFailure(str(self.path), e) from e
        self.log = None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append_success(
        self,
        path: str,
        fingerprint: str,
        artifact: Any,
        cost: float = 0.0,
    ) -> CompletedEntry:
        """Record a produced artifact; closes any open failure for *path*."""
        log = self._require()
        entry = CompletedEntry(path=path, fingerprint=fingerprint, artifact=artifact, cost=cost)
        log.completed = [e for e in log.completed if e.path != path]
        log.completed.append(entry)
        log.failed = [f for f in log.failed if f.path != path]
        self.save()
        return entry

    def append_failure(
        self,
        path: str,
        fingerprint: str,
        reason: str,
        retry_count: int = 1,
        rate_limited: bool = False,
    ) -> FailedEntry:
        """Record a failure for *path*.

        *retry_count* is the number of failed attempts made this time; it is
        added to the count of any earlier failure for the same path.
        """
        log = self._require()
        previous = next((f for f in log.failed if f.path == path), None)
        entry = FailedEntry(
            path=path,
            fingerprint=fingerprint,
            reason=reason,
            retry_count=retry_count + (previous.retry_count if previous else 0),
            rate_limited=rate_limited,
        )
        if previous is not None:
            log.failed = [entry if f.path == path else f for f in log.failed]
        else:
            log.failed.append(entry)
        self.save()
        return entry

    def reset_completed(self) -> list[CompletedEntry]:
        """Drop completed entries (already merged), keeping open failures."""
        log = self._require()
        drained = log.completed
        log.completed = []
        self.save()
        return drained

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def completed(self) -> list[CompletedEntry]:
        return self.log.completed if self.log else []

    @property
    def failed(self) -> list[FailedEntry]:
        return self.log.failed if self.log else []

    def _require(self) -> StagingLog:
        if self.log is None:
            raise RuntimeError("staging log not created or loaded")
        return self.log
