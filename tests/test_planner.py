"""Tests for the transformation planner and its instruction records."""

from __future__ import annotations

import json
from pathlib import Path

from conftest import make_tree, scan
from gogdiff_core.patches import find_candidates
from gogdiff_core.planner import (
    ApplyPatch,
    ExtractArchive,
    LinkOrCopy,
    Move,
    Remove,
    RemoveEmptyDir,
    TransformationPlanner,
    Verify,
    choose_staging_names,
    serialize_operations,
)
from gogdiff_core.reconcile import reconcile
from gogdiff_core.runtime import OPERATIONS


def _plan(source_root: Path, target_root: Path, with_patches: bool = False):
    source, target = scan(source_root), scan(target_root)
    result = reconcile(source.index, target.index)
    candidates = (
        find_candidates(list(result.source_only), list(result.target_only)) if with_patches else []
    )
    return TransformationPlanner().plan(source, target, result, candidates)


# ── Staging names ────────────────────────────────────────────────────


def test_staging_names_skip_taken():
    a, b = choose_staging_names({".gogdiff-staging-0"}, {".gogdiff-staging-2"})
    assert (a, b) == (".gogdiff-staging-1", ".gogdiff-staging-3")


def test_staging_names_distinct_by_default():
    a, b = choose_staging_names(set(), set())
    assert a != b


# ── Instruction records ──────────────────────────────────────────────


def test_every_operation_has_a_runtime_handler():
    ops = [
        Move("a", "b"),
        LinkOrCopy("a", "b"),
        Remove("a"),
        RemoveEmptyDir("a"),
        ExtractArchive("s"),
        ApplyPatch("base", "patch", "out"),
        Verify(),
    ]
    for line in serialize_operations(ops).splitlines():
        assert json.loads(line)[0] in OPERATIONS


def test_move_record_overwrite_flag():
    assert Move("a", "b").to_record() == ["move", "a", "b"]
    assert Move("a", "b", overwrite=True).to_record() == ["move", "a", "b", True]


def test_records_are_ascii():
    text = serialize_operations([Remove("caf\udce9/über\n.txt")])
    assert text.isascii()
    assert json.loads(text) == ["remove", "caf\udce9/über\n.txt"]


# ── Plans ────────────────────────────────────────────────────────────


def test_rename_only_moves_carrier(tmp_path: Path):
    source = make_tree(tmp_path / "s", {"old/name.dat": "payload"})
    target = make_tree(tmp_path / "t", {"new/name2.dat": "payload"})
    plan = _plan(source, target)
    a, b = plan.staging

    assert plan.operations[0] == Move("old/name.dat", f"{a}/new/name2.dat")
    assert ExtractArchive(a) in plan.operations
    assert RemoveEmptyDir("old") in plan.operations
    assert Move(f"{a}/new", "new") in plan.operations
    assert plan.operations[-1] == Verify()
    assert plan.payload == ()
    assert plan.source_disposition == {"old/name.dat": "carrier"}


def test_duplicates_fan_out_from_one_carrier(tmp_path: Path):
    source = make_tree(tmp_path / "s", {"x1": "dup", "x2": "dup"})
    target = make_tree(tmp_path / "t", {"y1": "dup", "y2": "dup", "y3": "dup"})
    plan = _plan(source, target)
    a, _ = plan.staging

    moves = [op for op in plan.operations if isinstance(op, Move) and op.src in ("x1", "x2")]
    assert moves == [Move("x1", f"{a}/y1")]
    assert Remove("x2") in plan.operations
    links = [op for op in plan.operations if isinstance(op, LinkOrCopy)]
    assert links == [LinkOrCopy(f"{a}/y1", f"{a}/y2"), LinkOrCopy(f"{a}/y1", f"{a}/y3")]
    assert plan.source_disposition == {"x1": "carrier", "x2": "removed"}


def test_source_partition_is_complete(tmp_path: Path):
    source = make_tree(
        tmp_path / "s",
        {"keep": "k", "keep-dup": "k", "gone": "g", "w/game.exe": "old exe"},
    )
    target = make_tree(tmp_path / "t", {"keep": "k", "l/game.exe": "new exe", "fresh": "f"})
    plan = _plan(source, target, with_patches=True)

    assert set(plan.source_disposition) == {"keep", "keep-dup", "gone", "w/game.exe"}
    assert plan.source_disposition["keep"] == "carrier"
    assert plan.source_disposition["keep-dup"] == "removed"
    assert plan.source_disposition["gone"] == "removed"
    assert plan.source_disposition["w/game.exe"] == "patch-base"


def test_patch_reads_untouched_base_and_writes_to_second_staging(tmp_path: Path):
    source = make_tree(tmp_path / "s", {"common": "c", "w/game.exe": "old exe"})
    target = make_tree(tmp_path / "t", {"common": "c", "l/game.exe": "new exe"})
    plan = _plan(source, target, with_patches=True)
    a, b = plan.staging

    patch_op = ApplyPatch("w/game.exe", f"{a}/l/game.exe", f"{b}/l/game.exe")
    ops = list(plan.operations)
    assert patch_op in ops
    assert ops.index(ExtractArchive(a)) < ops.index(patch_op)
    # The base is never moved or removed by a preceding operation.
    before = ops[: ops.index(patch_op)]
    assert not any(getattr(op, "src", None) == "w/game.exe" for op in before)
    assert Remove("w/game.exe") not in ops
    assert Move(f"{b}/l/game.exe", "l/game.exe", overwrite=True) in ops
    assert ops[-2] == RemoveEmptyDir(b)

    kinds = {e.arcname: e.kind for e in plan.payload}
    assert kinds == {"l/game.exe": "patch"}


def test_ambiguous_basename_is_removed_and_archived_in_full(tmp_path: Path):
    source = make_tree(
        tmp_path / "s", {"common": "c", "a/x.dat": "x version a", "b/x.dat": "x version b"}
    )
    target = make_tree(tmp_path / "t", {"common": "c", "c/x.dat": "x version c"})
    plan = _plan(source, target, with_patches=True)

    ops = list(plan.operations)
    assert Remove("a/x.dat") in ops
    assert Remove("b/x.dat") in ops
    assert not any(isinstance(op, ApplyPatch) for op in ops)
    assert {e.arcname: e.kind for e in plan.payload} == {"c/x.dat": "file"}
    assert plan.source_disposition["a/x.dat"] == "removed"
    assert plan.source_disposition["b/x.dat"] == "removed"


def test_payload_holds_target_only_symlinks_and_empty_dirs(tmp_path: Path):
    source = make_tree(tmp_path / "s", {"common": "c"}, symlinks={"oldlink": "common"})
    target = make_tree(
        tmp_path / "t",
        {"common": "c", "new.txt": "n"},
        symlinks={"link": "common"},
        empty_dirs=["saves"],
    )
    plan = _plan(source, target)
    kinds = {e.arcname: e.kind for e in plan.payload}
    assert kinds == {"new.txt": "file", "link": "symlink", "saves": "dir"}
    # Source symlinks are not content and must not survive.
    assert Remove("oldlink") in plan.operations


def test_source_dirs_removed_deepest_first(tmp_path: Path):
    source = make_tree(tmp_path / "s", {"a/b/c/file": "x", "a/other": "y"})
    target = make_tree(tmp_path / "t", {"file": "x"})
    plan = _plan(source, target)
    rmdirs = [op.path for op in plan.operations if isinstance(op, RemoveEmptyDir)]
    assert rmdirs.index("a/b/c") < rmdirs.index("a/b") < rmdirs.index("a")


def test_staging_avoids_both_trees(tmp_path: Path):
    source = make_tree(tmp_path / "s", {".gogdiff-staging-0/x": "x"})
    target = make_tree(tmp_path / "t", {".gogdiff-staging-1": "x"})
    plan = _plan(source, target)
    assert plan.staging == (".gogdiff-staging-2", ".gogdiff-staging-3")


def test_manifest_is_target_index(tmp_path: Path):
    source = make_tree(tmp_path / "s", {"a": "1"})
    target = make_tree(tmp_path / "t", {"a": "1", "b": "2"})
    target_scan = scan(target)
    plan = _plan(source, target)
    assert plan.manifest == target_scan.index.entries
