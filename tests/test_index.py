"""Tests for the tree indexer."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest

from conftest import make_tree
from gogdiff_core.config.models import IndexConfig
from gogdiff_core.errors import PreconditionError
from gogdiff_core.index import (
    FileFingerprint,
    FingerprintIndex,
    TreeIndexer,
    TreeScan,
    compute_digest,
    compute_file_digest,
    walk_tree,
)


def _sha(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


# ── Digest primitives ────────────────────────────────────────────────


def test_compute_digest_matches_hashlib():
    assert compute_digest(b"hello") == _sha(b"hello")


def test_compute_digest_other_algorithm():
    assert compute_digest(b"hello", "md5") == hashlib.md5(b"hello").hexdigest()


def test_compute_file_digest(tmp_path: Path):
    f = tmp_path / "sample.bin"
    f.write_bytes(b"\x00\x01payload")
    assert compute_file_digest(f) == compute_digest(b"\x00\x01payload")


# ── Walking ──────────────────────────────────────────────────────────


def test_walk_tree_lists_regular_files(tmp_path: Path):
    make_tree(tmp_path, {"a.txt": "a", "sub/b.txt": "b", "sub/deep/c.txt": "c"})
    files, layout = walk_tree(tmp_path)
    assert sorted(files) == ["a.txt", "sub/b.txt", "sub/deep/c.txt"]
    assert layout.directories == ("sub", "sub/deep")
    assert layout.empty_directories == ()


def test_walk_tree_records_empty_directories(tmp_path: Path):
    make_tree(tmp_path, {"a.txt": "a"}, empty_dirs=["saves", "data/cache"])
    _, layout = walk_tree(tmp_path)
    assert layout.empty_directories == ("data/cache", "saves")
    # "data" holds a directory, so it is not empty
    assert "data" in layout.directories


def test_walk_tree_does_not_follow_symlinks(tmp_path: Path):
    make_tree(
        tmp_path,
        {"real/file.txt": "x"},
        symlinks={"link-to-dir": "real", "link-to-file": "real/file.txt"},
    )
    files, layout = walk_tree(tmp_path)
    assert files == ["real/file.txt"]
    assert dict(layout.symlinks) == {"link-to-dir": "real", "link-to-file": "real/file.txt"}
    assert layout.symlink_paths == ("link-to-dir", "link-to-file")


def test_walk_tree_dangling_symlink(tmp_path: Path):
    make_tree(tmp_path, {}, symlinks={"dangling": "nowhere"})
    files, layout = walk_tree(tmp_path)
    assert files == []
    assert layout.symlinks == (("dangling", "nowhere"),)


# ── TreeIndexer ──────────────────────────────────────────────────────


def test_index_sorted_by_digest_then_path(tmp_path: Path):
    make_tree(tmp_path, {"z.txt": "same", "a.txt": "same", "m.txt": "other"})
    index = TreeIndexer().index(tmp_path)
    assert list(index.entries) == sorted(index.entries)
    assert index.paths_for(_sha(b"same")) == ("a.txt", "z.txt")
    assert index.paths_for(_sha(b"other")) == ("m.txt",)
    assert index.paths_for("0" * 64) == ()


def test_index_is_idempotent(tmp_path: Path):
    make_tree(tmp_path, {f"dir{i}/file{j}.dat": f"{i}-{j}" for i in range(4) for j in range(5)})
    first = TreeIndexer(IndexConfig(workers=1)).index(tmp_path)
    second = TreeIndexer(IndexConfig(workers=8)).index(tmp_path)
    assert first == second
    assert len(first) == 20


def test_index_empty_file(tmp_path: Path):
    make_tree(tmp_path, {"empty": b""})
    index = TreeIndexer().index(tmp_path)
    assert index.entries == (FileFingerprint(_sha(b""), "empty"),)


def test_index_uses_configured_algorithm(tmp_path: Path):
    make_tree(tmp_path, {"a": "a"})
    index = TreeIndexer(IndexConfig(algorithm="md5")).index(tmp_path)
    assert index.algorithm == "md5"
    assert index.entries[0].digest == compute_digest(b"a", "md5")


def test_index_rejects_missing_root(tmp_path: Path):
    with pytest.raises(PreconditionError):
        TreeIndexer().index(tmp_path / "missing")


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs mkfifo")
def test_special_file_aborts_scan(tmp_path: Path):
    make_tree(tmp_path, {"sub/ok.txt": "ok"})
    os.mkfifo(tmp_path / "sub" / "pipe")
    with pytest.raises(PreconditionError, match="special file"):
        TreeIndexer().scan(tmp_path)


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read any file")
def test_index_unreadable_file_aborts(tmp_path: Path):
    make_tree(tmp_path, {"ok.txt": "ok", "secret.txt": "no"})
    (tmp_path / "secret.txt").chmod(0)
    try:
        with pytest.raises(PreconditionError, match="secret.txt"):
            TreeIndexer().index(tmp_path)
    finally:
        (tmp_path / "secret.txt").chmod(0o644)


def test_digests_are_distinct_and_sorted(tmp_path: Path):
    make_tree(tmp_path, {"a": "1", "b": "1", "c": "2"})
    index = TreeIndexer().index(tmp_path)
    assert index.digests() == sorted({_sha(b"1"), _sha(b"2")})


def test_is_identical_to_requires_same_paths():
    a = FingerprintIndex("/a", "sha256", (FileFingerprint("d1", "x"),))
    b = FingerprintIndex("/b", "sha256", (FileFingerprint("d1", "x"),))
    renamed = FingerprintIndex("/c", "sha256", (FileFingerprint("d1", "y"),))
    assert a.is_identical_to(b)
    assert not a.is_identical_to(renamed)


# ── Persistence ──────────────────────────────────────────────────────


def test_scan_json_round_trip(tmp_path: Path):
    root = make_tree(
        tmp_path / "tree",
        {"a.txt": "a", "sub/b.txt": "b"},
        symlinks={"l": "a.txt"},
        empty_dirs=["empty"],
    )
    scanned = TreeIndexer().scan(root)
    state = tmp_path / "scan.json"
    scanned.save(state)
    assert TreeScan.load(state) == scanned


def test_scan_preserves_undecodable_names(tmp_path: Path):
    root = tmp_path / "tree"
    root.mkdir()
    raw = os.fsencode(root) + b"/caf\xe9.txt"
    with open(raw, "wb") as f:
        f.write(b"latin-1 name")
    scanned = TreeIndexer().scan(root)
    (entry,) = scanned.index.entries
    assert os.fsencode(entry.path) == b"caf\xe9.txt"
    assert TreeScan.from_json(scanned.to_json()) == scanned


def test_top_level_names(tmp_path: Path):
    root = make_tree(
        tmp_path / "tree",
        {"a.txt": "a", "sub/deep/b.txt": "b"},
        symlinks={"link": "a.txt"},
        empty_dirs=["void"],
    )
    assert TreeIndexer().scan(root).top_level_names() == {"a.txt", "sub", "link", "void"}
