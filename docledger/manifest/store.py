"""Loading, saving and merging the manifest."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from docledger._fs import atomic_write_text
from docledger.manifest.models import Manifest, ManifestStats, _utcnow
from docledger.merkle.models import ROOT_PATH, Node

if TYPE_CHECKING:
    from docledger.staging.models import CompletedEntry

logger = logging.getLogger(__name__)


def create_manifest(root_hash: str = "") -> Manifest:
    """A fresh, empty manifest."""
    return Manifest(root_hash=root_hash)


def load_manifest(path: Path) -> Manifest | None:
    """Read the manifest, or None when it is missing or unreadable."""
    path = Path(path)
    if not path.is_file():
        return None
    try:
        return Manifest.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.warning("Failed to load manifest %s: %s", path, e)
        return None


def save_manifest(path: Path, manifest: Manifest) -> None:
    """Persist the manifest atomically. Raises IOFailure on error."""
    atomic_write_text(Path(path), manifest.model_dump_json(indent=2))


def calculate_stats(nodes: Mapping[str, Node]) -> ManifestStats:
    """Count files and sum artifact costs."""
    total_files = 0
    total_cost = 0.0
    for node in nodes.values():
        if node.kind == "file":
            total_files += 1
        if node.has_artifact:
            total_cost += node.cost
    return ManifestStats(total_files=total_files, total_cost=total_cost)


def merge_completed(
    manifest: Manifest,
    tree_nodes: Mapping[str, Node],
    completed: Iterable[CompletedEntry],
    deleted: Iterable[str] = (),
) -> Manifest:
    """Fold staged completions into a copy of *manifest*.

    Each completed entry replaces the cached node with the current tree node
    carrying the new artifact. Entries whose fingerprint no longer matches
    the tree are ignored. Paths that were neither completed nor deleted keep
    their cached node untouched, so a path that failed or was never reached
    still looks new or changed to the next run.
    """
    nodes = dict(manifest.nodes)
    for path in deleted:
        nodes.pop(path, None)

    for entry in completed:
        node = tree_nodes.get(entry.path)
        if node is None or node.fingerprint != entry.fingerprint:
            logger.debug("Dropping staged entry for %s: fingerprint no longer current", entry.path)
            continue
        nodes[entry.path] = node.model_copy(
            update={
                "artifact": entry.artifact,
                "cost": entry.cost,
                "last_processed_at": entry.completed_at,
            }
        )

    root = nodes.get(ROOT_PATH)
    stats = calculate_stats(nodes)
    return manifest.model_copy(
        update={
            "generated_at": _utcnow(),
            "root_hash": root.fingerprint if root is not None else "",
            "nodes": nodes,
            "stats": stats,
        }
    )
