"""The processor boundary: whatever turns a node into an artifact."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from docledger.merkle.models import Node


@dataclass
class ProcessContext:
    """What a processor gets besides the node itself."""

    root: Path
    # child path -> artifact, only for directory nodes
    children: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProcessResult:
    artifact: Any
    cost: float = 0.0


@runtime_checkable
class Processor(Protocol):
    """Produces the artifact for one node.

    For a file node the processor reads the file under ``context.root``; for
    a directory node it works from ``context.children``. Failures must be
    raised as docledger errors so retries can be classified.
    """

    async def process(self, node: Node, context: ProcessContext) -> ProcessResult:
        ...
