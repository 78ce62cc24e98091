"""Turns reconciliation output into a collision-free operation sequence."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Literal

from gogdiff_core.index.models import FileFingerprint, TreeScan
from gogdiff_core.patches.models import PatchCandidate
from gogdiff_core.planner.ops import (
    ApplyPatch,
    ExtractArchive,
    LinkOrCopy,
    Move,
    Remove,
    RemoveEmptyDir,
    TransformationOp,
    Verify,
)
from gogdiff_core.reconcile.models import ReconciliationResult

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".gogdiff-staging-"

Disposition = Literal["carrier", "removed", "patch-base"]


@dataclass(frozen=True)
class PayloadEntry:
    """One archive member; ``patch`` entries come from the patch store."""

    arcname: str
    kind: Literal["file", "symlink", "dir", "patch"]


@dataclass(frozen=True)
class TransformationPlan:
    operations: tuple[TransformationOp, ...]
    staging: tuple[str, str]
    payload: tuple[PayloadEntry, ...] = ()
    manifest: tuple[FileFingerprint, ...] = ()
    algorithm: str = "sha256"
    source_disposition: dict[str, Disposition] = field(default_factory=dict)

    def summary(self) -> dict[str, int]:
        counts = Counter(op.tag for op in self.operations)
        counts["payload"] = len(self.payload)
        return dict(counts)


def _top(path: str) -> str:
    return path.split("/", 1)[0]


def _depth(path: str) -> int:
    return path.count("/")


def _deepest_first(paths) -> list[str]:
    return sorted(paths, key=lambda p: (-_depth(p), p))


def _parents(path: str) -> list[str]:
    parts = path.split("/")[:-1]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


def choose_staging_names(*taken: set[str]) -> tuple[str, str]:
    """Two distinct names absent from the top level of every given tree."""
    used = set().union(*taken)
    names: list[str] = []
    n = 0
    while len(names) < 2:
        candidate = f"{STAGING_PREFIX}{n}"
        if candidate not in used:
            names.append(candidate)
        n += 1
    return names[0], names[1]


class TransformationPlanner:
    """Orders the operations that turn a source tree into the target tree.

    Staging A receives moved, linked and extracted content under its final
    path. Staging B receives patch output only, so a patch base is still the
    untouched source file when the decoder reads it.
    """

    def plan(
        self,
        source: TreeScan,
        target: TreeScan,
        reconciliation: ReconciliationResult,
        candidates: list[PatchCandidate],
    ) -> TransformationPlan:
        staging_a, staging_b = choose_staging_names(
            source.top_level_names(), target.top_level_names()
        )
        remaining = reconciliation.without_patches(candidates)

        def in_a(path: str) -> str:
            return f"{staging_a}/{path}"

        def in_b(path: str) -> str:
            return f"{staging_b}/{path}"

        ops: list[TransformationOp] = []
        disposition: dict[str, Disposition] = {}
        staged_tops: set[str] = set()

        # 1. One carrier per common digest, fanned out to every target path.
        for digest in remaining.common_digests:
            carrier, *duplicates = source.index.paths_for(digest)
            first, *others = target.index.paths_for(digest)
            ops.append(Move(carrier, in_a(first)))
            disposition[carrier] = "carrier"
            for path in duplicates:
                ops.append(Remove(path))
                disposition[path] = "removed"
            for path in others:
                ops.append(LinkOrCopy(in_a(first), in_a(path)))
            staged_tops.update(_top(p) for p in (first, *others))

        # 2. Target-only files, symlinks, empty dirs and patch blobs.
        payload = self._payload(target, remaining, candidates)
        ops.append(ExtractArchive(staging_a))
        staged_tops.update(_top(e.arcname) for e in payload if e.kind != "patch")
        # A consumed blob leaves its parent directories behind in staging A.
        staged_tops.update(_top(c.target_path) for c in candidates if "/" in c.target_path)

        # 3. Patches write into staging B.
        for c in candidates:
            ops.append(ApplyPatch(c.source_path, in_a(c.target_path), in_b(c.target_path)))
            disposition[c.source_path] = "patch-base"

        # 4. Whatever is left of the source tree.
        for path in remaining.source_only:
            ops.append(Remove(path))
            disposition[path] = "removed"
        for path in source.layout.symlink_paths:
            ops.append(Remove(path))

        # 5. Every source directory is now empty.
        for path in _deepest_first(source.layout.directories):
            ops.append(RemoveEmptyDir(path))

        # 6. Nothing but the staging directories is left, so no name can clash.
        for name in sorted(staged_tops):
            ops.append(Move(in_a(name), name))
        ops.append(RemoveEmptyDir(staging_a))

        # 7. Patched files supersede whatever sits at their path.
        patch_dirs: set[str] = set()
        for c in candidates:
            ops.append(Move(in_b(c.target_path), c.target_path, overwrite=True))
            patch_dirs.update(_parents(c.target_path))
        for path in _deepest_first(patch_dirs):
            ops.append(RemoveEmptyDir(in_b(path)))
        ops.append(RemoveEmptyDir(staging_b))

        # 8.
        ops.append(Verify())

        plan = TransformationPlan(
            operations=tuple(ops),
            staging=(staging_a, staging_b),
            payload=payload,
            manifest=target.index.entries,
            algorithm=target.index.algorithm,
            source_disposition=disposition,
        )
        logger.info("Planned %d operations: %s", len(ops), plan.summary())
        return plan

    @staticmethod
    def _payload(
        target: TreeScan,
        remaining: ReconciliationResult,
        candidates: list[PatchCandidate],
    ) -> tuple[PayloadEntry, ...]:
        entries = [PayloadEntry(p, "file") for p in remaining.target_only]
        entries += [PayloadEntry(p, "symlink") for p in target.layout.symlink_paths]
        entries += [PayloadEntry(p, "dir") for p in target.layout.empty_directories]
        entries += [PayloadEntry(c.target_path, "patch") for c in candidates]
        return tuple(sorted(entries, key=lambda e: e.arcname))
