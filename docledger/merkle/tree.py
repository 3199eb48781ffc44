"""Content hashing and Merkle tree construction over a project directory."""

from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from pathspec import PathSpec

from docledger.errors import IOFailure
from docledger.merkle.models import ROOT_PATH, Node

logger = logging.getLogger(__name__)

# Skipped when no explicit rule list is supplied
DEFAULT_EXCLUDE: tuple[str, ...] = (
    ".docs",
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    "coverage",
    ".cache",
    ".vscode",
    ".idea",
    "__pycache__",
    ".venv",
    "*.log",
    ".DS_Store",
    # Images
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.svg",
    "*.ico",
    "*.webp",
    "*.bmp",
    "*.tiff",
    # Fonts
    "*.ttf",
    "*.otf",
    "*.woff",
    "*.woff2",
    "*.eot",
)


def hash_bytes(content: bytes) -> str:
    """SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(content).hexdigest()


def hash_file(path: Path) -> str:
    """Read a file from disk and return its content hash."""
    try:
        return hash_bytes(Path(path).read_bytes())
    except OSError as e:
        raise IOFailure(str(path), e) from e


def hash_children(fingerprints: Iterable[str]) -> str:
    """Compute a directory hash from its children's fingerprints.

    Sorts lexicographically before joining, so enumeration order never
    changes the result.
    """
    joined = "".join(sorted(fingerprints))
    return hash_bytes(joined.encode())


@lru_cache(maxsize=64)
def compile_rules(patterns: tuple[str, ...]) -> PathSpec:
    """Compile exclusion rules with gitignore (``gitwildmatch``) semantics."""
    return PathSpec.from_lines("gitwildmatch", patterns)


def should_exclude(rel_path: str, patterns: Sequence[str], is_dir: bool = False) -> bool:
    """Return True if *rel_path* (POSIX, relative to the root) matches any rule.

    Rules follow ``.gitignore``: a rule without an inner ``/`` matches at any
    depth, a rule with one is anchored at the root, and a trailing ``/``
    restricts the rule to directories.
    """
    rules = tuple(patterns)
    # Exact relative path, regardless of glob characters in it
    if rel_path in rules:
        return True
    spec = compile_rules(rules)
    if is_dir:
        return spec.match_file(rel_path + "/")
    return spec.match_file(rel_path)


def path_depth(path: str) -> int:
    """Number of path segments; the root is depth 0."""
    if path == ROOT_PATH:
        return 0
    return len(path.split("/"))


def sort_by_depth(nodes: Iterable[Node], deepest_first: bool = True) -> list[Node]:
    """Order nodes by depth, ties broken by path so the order is stable."""
    if deepest_first:
        return sorted(nodes, key=lambda n: (-path_depth(n.path), n.path))
    return sorted(nodes, key=lambda n: (path_depth(n.path), n.path))


class MerkleTree:
    """Snapshot of a project directory: one node per path plus the root hash."""

    def __init__(
        self,
        root_hash: str,
        nodes: dict[str, Node],
        root_path: str = "",
        built_at: datetime | None = None,
    ) -> None:
        self.root_hash = root_hash
        self.nodes = nodes
        self.root_path = root_path
        self.built_at = built_at or datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        root_path: str | Path,
        exclude: Sequence[str] | None = None,
    ) -> MerkleTree:
        """Walk *root_path* depth-first and hash every non-excluded entry.

        Excluded directories are never descended into. Symlinked directories
        are not followed. Any unreadable entry that is not excluded raises
        ``IOFailure`` and no tree is returned.
        """
        root = Path(root_path).resolve()
        if not root.is_dir():
            raise IOFailure(str(root), NotADirectoryError("project root is not a directory"))
        patterns = tuple(DEFAULT_EXCLUDE if exclude is None else exclude)

        nodes: dict[str, Node] = {}
        # rel dir path -> child rel paths, filled on first visit
        children_map: dict[str, list[str]] = {}
        # (absolute dir, rel dir, children already visited)
        stack: list[tuple[Path, str, bool]] = [(root, ROOT_PATH, False)]

        while stack:
            dir_path, rel, expanded = stack.pop()

            if expanded:
                children = sorted(children_map.pop(rel))
                nodes[rel] = Node(
                    path=rel,
                    kind="directory",
                    children_hash=hash_children(nodes[c].fingerprint for c in children),
                    children=children,
                )
                continue

            try:
                with os.scandir(dir_path) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                raise IOFailure(rel, e) from e

            children: list[str] = []
            subdirs: list[tuple[Path, str]] = []
            for entry in entries:
                child_rel = entry.name if rel == ROOT_PATH else f"{rel}/{entry.name}"
                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                    if should_exclude(child_rel, patterns, is_dir=is_dir):
                        continue
                    if is_dir:
                        subdirs.append((Path(entry.path), child_rel))
                    elif entry.is_file():
                        nodes[child_rel] = Node(
                            path=child_rel,
                            kind="file",
                            content_hash=hash_file(Path(entry.path)),
                        )
                    else:
                        logger.debug("Skipping non-regular entry %s", child_rel)
                        continue
                except OSError as e:
                    raise IOFailure(child_rel, e) from e
                children.append(child_rel)

            children_map[rel] = children
            stack.append((dir_path, rel, True))
            for sub_path, sub_rel in reversed(subdirs):
                stack.append((sub_path, sub_rel, False))

        root_hash = nodes[ROOT_PATH].fingerprint
        logger.debug("Built tree for %s: %d nodes, root %s", root, len(nodes), root_hash[:12])
        return cls(root_hash=root_hash, nodes=nodes, root_path=str(root))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def file_nodes(self) -> list[Node]:
        return [n for n in self.nodes.values() if n.is_file]

    def directory_nodes(self) -> list[Node]:
        return [n for n in self.nodes.values() if not n.is_file]

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, path: object) -> bool:
        return path in self.nodes
