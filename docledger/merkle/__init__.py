"""Merkle tree subsystem: hashing, tree building and change detection."""

from docledger.merkle.differ import detect_changes
from docledger.merkle.models import ROOT_PATH, ChangeSet, Node
from docledger.merkle.tree import (
    DEFAULT_EXCLUDE,
    MerkleTree,
    hash_bytes,
    hash_children,
    hash_file,
    path_depth,
    should_exclude,
    sort_by_depth,
)


def build_tree(*args, **kwargs) -> MerkleTree:
    """Convenience wrapper around MerkleTree.build()."""
    return MerkleTree.build(*args, **kwargs)


__all__ = [
    "ChangeSet",
    "DEFAULT_EXCLUDE",
    "MerkleTree",
    "Node",
    "ROOT_PATH",
    "build_tree",
    "detect_changes",
    "hash_bytes",
    "hash_children",
    "hash_file",
    "path_depth",
    "should_exclude",
    "sort_by_depth",
]
