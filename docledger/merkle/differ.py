"""Change detection between a freshly built tree and the cached manifest."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from docledger.merkle.models import ChangeSet, Node

if TYPE_CHECKING:
    from docledger.manifest.models import Manifest


def detect_changes(
    current: Mapping[str, Node],
    manifest: Manifest | None,
) -> ChangeSet:
    """Classify every path as new, changed, unchanged or deleted.

    Unchanged nodes get the cached artifact, cost and processing timestamp
    copied onto them in place, so the caller can treat *current* as the
    complete working view without re-deriving anything.
    """
    if manifest is None or not manifest.nodes:
        return ChangeSet(new=tuple(current.values()))

    cached = manifest.nodes
    new: list[Node] = []
    changed: list[Node] = []
    unchanged: list[Node] = []

    for path, node in current.items():
        stored = cached.get(path)
        if stored is None:
            new.append(node)
        elif stored.kind != node.kind or stored.fingerprint != node.fingerprint:
            changed.append(node)
        else:
            node.artifact = stored.artifact
            node.cost = stored.cost
            node.last_processed_at = stored.last_processed_at
            unchanged.append(node)

    deleted = tuple(p for p in cached if p not in current)

    return ChangeSet(
        new=tuple(new),
        changed=tuple(changed),
        unchanged=tuple(unchanged),
        deleted=deleted,
    )
