"""Staged build: populate, index, reconcile, resolve patches, plan and emit.

Each stage persists its output under ``<out>/state`` so a later run can
resume from any stage with ``Pipeline.run(first_stage)``.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from gogdiff_core.artifact.emitter import ArtifactEmitter
from gogdiff_core.errors import PreconditionError
from gogdiff_core.index.indexer import TreeIndexer
from gogdiff_core.index.models import TreeScan
from gogdiff_core.patches.codec import PatchCodec
from gogdiff_core.patches.models import PatchCandidate, load_candidates, save_candidates
from gogdiff_core.patches.resolver import PatchResolver
from gogdiff_core.pipeline.context import (
    PATCHES,
    RECONCILIATION,
    SOURCE_SCAN,
    STAGE_OUTPUTS,
    TARGET_SCAN,
    RunContext,
    Stage,
)
from gogdiff_core.planner.planner import TransformationPlanner
from gogdiff_core.population import TreePopulator
from gogdiff_core.reconcile.engine import enforce_policy, reconcile
from gogdiff_core.reconcile.models import ReconciliationResult

logger = logging.getLogger(__name__)


@dataclass
class BuildReport:
    source_files: int = 0
    target_files: int = 0
    common_digests: int = 0
    source_only: int = 0
    target_only: int = 0
    patches: int = 0
    operations: int = 0
    payload_members: int = 0
    artifact: Path | None = None
    artifact_size: int = 0


def atomic_save(path: Path, save: Callable[[Path], None]) -> None:
    """Run *save* against a sibling temp path, then rename it over *path*."""
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        save(tmp)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


class Pipeline:
    """Runs the build stages in order against one RunContext."""

    def __init__(
        self,
        ctx: RunContext,
        codec: PatchCodec | None = None,
        populator: TreePopulator | None = None,
    ) -> None:
        self.ctx = ctx
        self.populator = populator or TreePopulator(ctx.config.population)
        self.indexer = TreeIndexer(ctx.config.index)
        self.resolver = PatchResolver(ctx.config.patch, codec)
        self.planner = TransformationPlanner()
        self.emitter = ArtifactEmitter(ctx.config)
        self.report = BuildReport()

    @property
    def source_root(self) -> Path:
        return self.populator.tree_root("source", self.ctx.source, self.ctx.output_dir)

    @property
    def target_root(self) -> Path:
        return self.populator.tree_root("target", self.ctx.target, self.ctx.output_dir)

    def run(self, first_stage: Stage = Stage.POPULATE) -> BuildReport:
        self.ctx.state_dir.mkdir(parents=True, exist_ok=True)
        stages = first_stage.following()
        # Anything a rerun stage or its successors produced before is stale.
        for stage in stages:
            self._discard(stage)

        handlers = {
            Stage.POPULATE: self._populate,
            Stage.INDEX: self._index,
            Stage.RECONCILE: self._reconcile,
            Stage.RESOLVE: self._resolve,
            Stage.PLAN: self._plan,
        }
        for stage in stages:
            logger.info("Stage %s", stage.value)
            try:
                handlers[stage]()
            except BaseException:
                self._discard(stage)
                raise
        return self.report

    # ── stages ──

    def _populate(self) -> None:
        self.populator.populate("source", self.ctx.source, self.ctx.output_dir)
        self.populator.populate("target", self.ctx.target, self.ctx.output_dir)

    def _index(self) -> None:
        out = self.ctx.output_dir.resolve()
        for root in (self.source_root, self.target_root):
            if out.is_relative_to(root.resolve()):
                raise PreconditionError(f"the output folder {out} is inside the tree {root}")
        source = self.indexer.scan(self.source_root)
        target = self.indexer.scan(self.target_root)
        if source.index.algorithm != target.index.algorithm:
            raise PreconditionError("source and target were indexed with different algorithms")
        atomic_save(self.ctx.state_file(SOURCE_SCAN), source.save)
        atomic_save(self.ctx.state_file(TARGET_SCAN), target.save)
        self.report.source_files = len(source.index)
        self.report.target_files = len(target.index)

    def _reconcile(self) -> None:
        source, target = self._load_scans()
        result = reconcile(source.index, target.index)
        atomic_save(self.ctx.state_file(RECONCILIATION), result.save)
        self._record_reconciliation(result)

    def _resolve(self) -> None:
        source, target = self._load_scans()
        result = self._load_reconciliation()
        candidates = self.resolver.resolve(
            Path(source.root),
            Path(target.root),
            list(result.source_only),
            list(result.target_only),
            self.ctx.patch_store,
        )
        enforce_policy(source.index, target.index, result, len(candidates))
        atomic_save(self.ctx.state_file(PATCHES), lambda p: save_candidates(candidates, p))
        self.report.patches = len(candidates)

    def _plan(self) -> None:
        source, target = self._load_scans()
        result = self._load_reconciliation()
        candidates = self._load_candidates()
        self._record_reconciliation(result)
        self.report.patches = len(candidates)

        plan = self.planner.plan(source, target, result, candidates)
        emitted = self.emitter.emit(plan, Path(target.root), self.ctx.patch_store, self.ctx.artifact_path)
        self.report.operations = len(plan.operations)
        self.report.payload_members = emitted.payload_members
        self.report.artifact = emitted.path
        self.report.artifact_size = emitted.size

    # ── state ──

    def _record_reconciliation(self, result: ReconciliationResult) -> None:
        self.report.common_digests = len(result.common_digests)
        self.report.source_only = len(result.source_only)
        self.report.target_only = len(result.target_only)

    def _require(self, name: str) -> Path:
        path = self.ctx.state_file(name)
        if not path.is_file():
            raise PreconditionError(
                f"missing build state {path}; rerun from an earlier stage"
            )
        return path

    def _load_scans(self) -> tuple[TreeScan, TreeScan]:
        source = TreeScan.load(self._require(SOURCE_SCAN))
        target = TreeScan.load(self._require(TARGET_SCAN))
        self.report.source_files = len(source.index)
        self.report.target_files = len(target.index)
        return source, target

    def _load_reconciliation(self) -> ReconciliationResult:
        return ReconciliationResult.load(self._require(RECONCILIATION))

    def _load_candidates(self) -> list[PatchCandidate]:
        candidates = load_candidates(self._require(PATCHES))
        for c in candidates:
            blob = self.ctx.patch_store / c.target_path
            if not blob.is_file():
                raise PreconditionError(f"missing patch blob {blob}; rerun from the resolve stage")
        return candidates

    def _discard(self, stage: Stage) -> None:
        for name in STAGE_OUTPUTS[stage]:
            self.ctx.state_file(name).unlink(missing_ok=True)
        if stage is Stage.RESOLVE:
            shutil.rmtree(self.ctx.patch_store, ignore_errors=True)
        elif stage is Stage.PLAN:
            self.ctx.artifact_path.unlink(missing_ok=True)
