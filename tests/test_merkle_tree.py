"""Tests for hashing and Merkle tree construction."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from docledger.errors import IOFailure
from docledger.merkle import (
    DEFAULT_EXCLUDE,
    MerkleTree,
    build_tree,
    hash_bytes,
    hash_children,
    hash_file,
    path_depth,
    should_exclude,
    sort_by_depth,
)
from docledger.merkle.models import Node


# ── Hash primitives ──────────────────────────────────────────────────


def test_hash_bytes_deterministic():
    assert hash_bytes(b"hello") == hash_bytes(b"hello")


def test_hash_bytes_is_full_sha256():
    h = hash_bytes(b"anything")
    assert len(h) == 64
    assert all(c in "0123456789abcdef" for c in h)


def test_hash_bytes_different_inputs():
    assert hash_bytes(b"a") != hash_bytes(b"b")


def test_hash_file_matches_bytes(tmp_path: Path):
    f = tmp_path / "sample.txt"
    f.write_bytes(b"hello world")
    assert hash_file(f) == hash_bytes(b"hello world")


def test_hash_file_missing_raises_io_failure(tmp_path: Path):
    with pytest.raises(IOFailure) as exc_info:
        hash_file(tmp_path / "missing.txt")
    assert "missing.txt" in exc_info.value.path


def test_hash_children_order_independent():
    assert hash_children(["aaa", "bbb", "ccc"]) == hash_children(["ccc", "aaa", "bbb"])


def test_hash_children_empty():
    assert hash_children([]) == hash_bytes(b"")


# ── Exclusion rules ──────────────────────────────────────────────────


class TestShouldExclude:
    def test_exact_relative_path(self):
        assert should_exclude("src/gen/out.py", ["src/gen/out.py"])
        assert not should_exclude("src/gen/other.py", ["src/gen/out.py"])

    def test_bare_filename_any_depth(self):
        assert should_exclude("a/b/.DS_Store", [".DS_Store"])

    def test_directory_name_any_depth(self):
        assert should_exclude("node_modules", ["node_modules"])
        assert should_exclude("pkg/node_modules/x/index.js", ["node_modules"])

    def test_multi_segment_prefix(self):
        assert should_exclude("src/gen/deep/file.py", ["src/gen"])
        assert not should_exclude("other/src/gen/file.py", ["src/gen"])

    def test_extension_glob_any_depth(self):
        assert should_exclude("logo.png", ["*.png"])
        assert should_exclude("assets/img/logo.png", ["*.png"])
        assert not should_exclude("logo.png.txt", ["*.png"])

    def test_single_star_does_not_cross_separator(self):
        assert should_exclude("src/a.spec.js", ["src/*.spec.js"])
        assert not should_exclude("src/deep/a.spec.js", ["src/*.spec.js"])

    def test_double_star_any_depth(self):
        assert should_exclude("src/deep/er/a.spec.js", ["src/**/*.spec.js"])
        assert should_exclude("src/a.spec.js", ["src/**/*.spec.js"])

    def test_trailing_slash_matches_directories_only(self):
        assert should_exclude("build/out.js", ["build/"])
        assert should_exclude("pkg/build", ["build/"], is_dir=True)
        assert not should_exclude("pkg/build", ["build/"])

    def test_negated_rule_reincludes(self):
        rules = ["*.md", "!README.md"]
        assert should_exclude("docs/guide.md", rules)
        assert not should_exclude("README.md", rules)

    def test_no_partial_name_match(self):
        assert not should_exclude("rebuild/x.py", ["build"])

    def test_regex_chars_are_literal(self):
        assert should_exclude("a+b.txt", ["a+b.txt"])
        assert not should_exclude("aab.txt", ["a+b.*"])


# ── Tree build ───────────────────────────────────────────────────────


def test_build_simple_project(project: Path):
    tree = MerkleTree.build(project)
    assert set(tree.nodes) == {".", "a.txt", "b.txt"}
    root = tree.nodes["."]
    assert root.kind == "directory"
    assert root.children == ["a.txt", "b.txt"]
    assert tree.root_hash == root.children_hash
    assert tree.nodes["a.txt"].content_hash == hash_bytes(b"x")
    assert root.children_hash == hash_children([hash_bytes(b"x"), hash_bytes(b"y")])


def test_build_nested_paths_are_posix(nested_project: Path):
    tree = build_tree(nested_project)
    assert "src/lib/util.py" in tree.nodes
    assert tree.nodes["src"].children == ["src/lib", "src/main.py"]
    assert tree.nodes["src/lib"].kind == "directory"
    assert tree.nodes["src/lib"].children_hash == hash_children(
        [tree.nodes["src/lib/util.py"].content_hash]
    )


def test_empty_directory_gets_node(tmp_path: Path):
    (tmp_path / "empty").mkdir()
    tree = MerkleTree.build(tmp_path)
    assert tree.nodes["empty"].children == []
    assert tree.nodes["empty"].children_hash == hash_children([])


def test_excluded_directory_never_descended(nested_project: Path):
    with patch("docledger.merkle.tree.os.scandir", wraps=os.scandir) as scandir:
        tree = MerkleTree.build(nested_project, exclude=["docs"])
    assert "docs" not in tree.nodes
    assert "docs/guide.md" not in tree.nodes
    scanned = {Path(call.args[0]).name for call in scandir.call_args_list}
    assert "docs" not in scanned


def test_directory_only_rule_keeps_same_named_file(project: Path):
    (project / "out").mkdir()
    (project / "out" / "bundle.js").write_text("js")
    (project / "notes").mkdir()
    (project / "notes" / "out").write_text("a file called out")
    tree = MerkleTree.build(project, exclude=["out/"])
    assert "out" not in tree.nodes
    assert "out/bundle.js" not in tree.nodes
    assert "notes/out" in tree.nodes


def test_default_excludes_apply(project: Path):
    (project / ".git").mkdir()
    (project / ".git" / "HEAD").write_text("ref")
    (project / "debug.log").write_text("log")
    tree = MerkleTree.build(project)
    assert ".git" not in tree.nodes
    assert "debug.log" not in tree.nodes
    assert ".git" in DEFAULT_EXCLUDE


def test_explicit_empty_exclude_includes_everything(project: Path):
    (project / "debug.log").write_text("log")
    tree = MerkleTree.build(project, exclude=[])
    assert "debug.log" in tree.nodes


def test_root_must_be_directory(tmp_path: Path):
    f = tmp_path / "file.txt"
    f.write_text("x")
    with pytest.raises(IOFailure):
        MerkleTree.build(f)


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="needs POSIX permissions, non-root")
def test_unreadable_file_is_fatal(project: Path):
    secret = project / "secret.txt"
    secret.write_text("s")
    secret.chmod(0)
    try:
        with pytest.raises(IOFailure):
            MerkleTree.build(project)
        # An exclude rule makes the same tree buildable
        tree = MerkleTree.build(project, exclude=["secret.txt"])
        assert "secret.txt" not in tree.nodes
    finally:
        secret.chmod(0o644)


@pytest.mark.skipif(os.name == "nt", reason="symlinks")
def test_symlinked_directory_not_followed(nested_project: Path):
    (nested_project / "loop").symlink_to(nested_project / "src", target_is_directory=True)
    tree = MerkleTree.build(nested_project)
    assert "loop" not in tree.nodes
    assert "loop/main.py" not in tree.nodes


# ── Hash-tree properties ─────────────────────────────────────────────


def test_directory_hash_invariant_under_enumeration_order(nested_project: Path):
    baseline = MerkleTree.build(nested_project)
    real_scandir = os.scandir

    class _Reversed:
        def __init__(self, path):
            self._it = real_scandir(path)

        def __enter__(self):
            return iter(reversed(list(self._it)))

        def __exit__(self, *exc):
            self._it.close()

    with patch("docledger.merkle.tree.os.scandir", _Reversed):
        shuffled = MerkleTree.build(nested_project)

    assert shuffled.root_hash == baseline.root_hash
    for path, node in baseline.nodes.items():
        assert shuffled.nodes[path].fingerprint == node.fingerprint


def test_leaf_change_propagates_to_every_ancestor_only(nested_project: Path):
    before = MerkleTree.build(nested_project)
    (nested_project / "src" / "lib" / "util.py").write_text("def helper(): return 1")
    after = MerkleTree.build(nested_project)

    for ancestor in ("src/lib/util.py", "src/lib", "src", "."):
        assert before.nodes[ancestor].fingerprint != after.nodes[ancestor].fingerprint
    for unrelated in ("docs", "docs/guide.md", "src/main.py", "README.md"):
        assert before.nodes[unrelated].fingerprint == after.nodes[unrelated].fingerprint
    assert before.root_hash != after.root_hash


def test_rebuild_is_deterministic(nested_project: Path):
    assert MerkleTree.build(nested_project).root_hash == MerkleTree.build(nested_project).root_hash


# ── Helpers ──────────────────────────────────────────────────────────


def test_path_depth():
    assert path_depth(".") == 0
    assert path_depth("src") == 1
    assert path_depth("src/lib/util.py") == 3


def test_sort_by_depth_deepest_first():
    nodes = [Node(path=p, kind="directory") for p in (".", "src", "src/lib", "docs")]
    ordered = [n.path for n in sort_by_depth(nodes)]
    assert ordered == ["src/lib", "docs", "src", "."]
    assert [n.path for n in sort_by_depth(nodes, deepest_first=False)][0] == "."


def test_file_and_directory_node_queries(nested_project: Path):
    tree = MerkleTree.build(nested_project)
    assert {n.path for n in tree.file_nodes()} == {
        "README.md",
        "src/main.py",
        "src/lib/util.py",
        "docs/guide.md",
    }
    assert {n.path for n in tree.directory_nodes()} == {".", "src", "src/lib", "docs"}
    assert "src" in tree
    assert len(tree) == 8
