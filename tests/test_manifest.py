"""Tests for manifest persistence and merging."""

from __future__ import annotations

from pathlib import Path

from docledger.manifest import (
    MANIFEST_VERSION,
    calculate_stats,
    create_manifest,
    load_manifest,
    merge_completed,
    save_manifest,
)
from docledger.merkle import MerkleTree
from docledger.merkle.models import Node
from docledger.staging.models import CompletedEntry


def _entry(node: Node, artifact="summary", cost: float = 5.0) -> CompletedEntry:
    return CompletedEntry(path=node.path, fingerprint=node.fingerprint, artifact=artifact, cost=cost)


# ── Persistence ──────────────────────────────────────────────────────


class TestPersistence:
    def test_create_manifest_defaults(self):
        manifest = create_manifest()
        assert manifest.version == MANIFEST_VERSION
        assert manifest.root_hash == ""
        assert manifest.nodes == {}
        assert manifest.stats.total_files == 0

    def test_save_and_load(self, tmp_path: Path, project: Path):
        tree = MerkleTree.build(project)
        manifest = merge_completed(
            create_manifest(), tree.nodes, [_entry(n, {"summary": n.path}) for n in tree.nodes.values()]
        )
        path = tmp_path / "state" / "manifest.json"
        save_manifest(path, manifest)

        loaded = load_manifest(path)
        assert loaded is not None
        assert loaded.root_hash == tree.root_hash
        assert loaded.nodes["a.txt"].artifact == {"summary": "a.txt"}
        assert loaded.nodes["."].children == ["a.txt", "b.txt"]
        assert loaded.stats == manifest.stats

    def test_save_leaves_no_temp_files(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        save_manifest(path, create_manifest())
        save_manifest(path, create_manifest("abc"))
        assert [p.name for p in tmp_path.iterdir()] == ["manifest.json"]

    def test_load_missing_returns_none(self, tmp_path: Path):
        assert load_manifest(tmp_path / "nope.json") is None

    def test_load_corrupt_returns_none(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        path.write_text("{not json")
        assert load_manifest(path) is None

    def test_load_wrong_shape_returns_none(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        path.write_text('{"nodes": {"a": {"path": "a", "kind": "socket"}}}')
        assert load_manifest(path) is None


# ── Stats ────────────────────────────────────────────────────────────


def test_calculate_stats():
    nodes = {
        "a": Node(path="a", kind="file", content_hash="1", artifact="x", cost=3.0),
        "b": Node(path="b", kind="file", content_hash="2"),
        ".": Node(path=".", kind="directory", children_hash="3", artifact="y", cost=2.0),
    }
    stats = calculate_stats(nodes)
    assert stats.total_files == 2
    assert stats.total_cost == 5.0


# ── Merge ────────────────────────────────────────────────────────────


class TestMergeCompleted:
    def test_merge_inserts_completed(self, project: Path):
        tree = MerkleTree.build(project)
        merged = merge_completed(create_manifest(), tree.nodes, [_entry(tree.nodes["a.txt"])])
        assert set(merged.nodes) == {"a.txt"}
        assert merged.nodes["a.txt"].artifact == "summary"
        assert merged.nodes["a.txt"].last_processed_at is not None
        # Root not processed yet, so the manifest has no root hash
        assert merged.root_hash == ""

    def test_merge_is_pure(self, project: Path):
        tree = MerkleTree.build(project)
        original = create_manifest()
        merge_completed(original, tree.nodes, [_entry(tree.nodes["a.txt"])])
        assert original.nodes == {}
        assert tree.nodes["a.txt"].artifact is None

    def test_merge_keeps_untouched_cached_nodes(self, project: Path):
        tree = MerkleTree.build(project)
        first = merge_completed(create_manifest(), tree.nodes, [_entry(n) for n in tree.nodes.values()])

        (project / "a.txt").write_text("changed")
        tree2 = MerkleTree.build(project)
        merged = merge_completed(first, tree2.nodes, [_entry(tree2.nodes["a.txt"], "new")])

        assert merged.nodes["a.txt"].artifact == "new"
        assert merged.nodes["a.txt"].fingerprint == tree2.nodes["a.txt"].fingerprint
        # Root not reprocessed: keeps its old fingerprint so it is still "changed" next run
        assert merged.nodes["."].fingerprint == tree.nodes["."].fingerprint
        assert merged.root_hash == tree.root_hash
        assert merged.nodes["b.txt"] == first.nodes["b.txt"]

    def test_merge_drops_deleted(self, project: Path):
        tree = MerkleTree.build(project)
        first = merge_completed(create_manifest(), tree.nodes, [_entry(n) for n in tree.nodes.values()])
        merged = merge_completed(first, tree.nodes, [], deleted=["b.txt"])
        assert "b.txt" not in merged.nodes
        assert merged.stats.total_files == 1

    def test_merge_ignores_outdated_fingerprint(self, project: Path):
        tree = MerkleTree.build(project)
        stale = CompletedEntry(path="a.txt", fingerprint="0" * 64, artifact="old")
        merged = merge_completed(create_manifest(), tree.nodes, [stale])
        assert "a.txt" not in merged.nodes

    def test_merge_root_hash_from_root_node(self, project: Path):
        tree = MerkleTree.build(project)
        merged = merge_completed(create_manifest(), tree.nodes, [_entry(n) for n in tree.nodes.values()])
        assert merged.root_hash == tree.root_hash
        assert merged.stats.total_files == 2
        assert merged.stats.total_cost == 15.0
