"""Start-of-run handling of a staging log left by an interrupted run."""

from __future__ import annotations

import logging
from collections.abc import Callable

from docledger.errors import StalePriorRun
from docledger.staging.log import StagingStore
from docledger.staging.models import StagingLog

logger = logging.getLogger(__name__)

ConfirmDiscard = Callable[[StagingLog], bool]


def recover_staging(
    staging: StagingStore,
    root_hash: str,
    confirm_discard: ConfirmDiscard | None = None,
) -> tuple[StagingLog, bool]:
    """Load or create the staging log for a run over *root_hash*.

    Returns ``(log, resumed)``. A log whose root hash differs from the
    current tree is stale: it is discarded only if *confirm_discard*
    approves, otherwise ``StalePriorRun`` is raised and nothing is touched.
    """
    existing = staging.load()
    if existing is None:
        return staging.create(root_hash), False

    if existing.root_hash != root_hash:
        if confirm_discard is None or not confirm_discard(existing):
            raise StalePriorRun(existing.root_hash, root_hash)
        logger.warning(
            "Discarding stale staging log from %s (%d completed, %d failed)",
            existing.started_at.isoformat(),
            len(existing.completed),
            len(existing.failed),
        )
        staging.clear()
        return staging.create(root_hash), False

    logger.info(
        "Resuming interrupted run from %s: %d completed, %d failed",
        existing.started_at.isoformat(),
        len(existing.completed),
        len(existing.failed),
    )
    return existing, True
