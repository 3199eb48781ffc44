"""Atomic file helpers for the manifest, staging log and lock files."""

from __future__ import annotations

import os
from pathlib import Path

from docledger.errors import IOFailure


def atomic_write_text(path: Path, payload: str) -> None:
    """Write *payload* to a sibling temp file, then rename it over *path*.

    Readers see either the previous complete file or the new one.
    """
    path = Path(path)
    tmp = path.with_name(f"{path.name}.{os.getpid()}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise IOFailure(str(path), e) from e
