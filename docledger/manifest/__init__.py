"""Manifest: the durable cache of processed nodes and their artifacts."""

from docledger.manifest.models import MANIFEST_VERSION, Manifest, ManifestStats
from docledger.manifest.store import (
    calculate_stats,
    create_manifest,
    load_manifest,
    merge_completed,
    save_manifest,
)

__all__ = [
    "MANIFEST_VERSION",
    "Manifest",
    "ManifestStats",
    "calculate_stats",
    "create_manifest",
    "load_manifest",
    "merge_completed",
    "save_manifest",
]
