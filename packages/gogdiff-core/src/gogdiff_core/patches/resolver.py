"""Pairs one-sided files by unique basename and diffs each pair."""

from __future__ import annotations

import logging
import shutil
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from gogdiff_core.config.models import PatchConfig
from gogdiff_core.patches.codec import PatchCodec, create_codec
from gogdiff_core.patches.models import PatchCandidate

logger = logging.getLogger(__name__)


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def find_candidates(source_only: list[str], target_only: list[str]) -> list[PatchCandidate]:
    """Accept a basename only when it occurs exactly once on each side.

    Ambiguous or one-sided groups are excluded rather than guessed at; their
    files simply stay source-only or target-only.
    """
    source_groups: dict[str, list[str]] = defaultdict(list)
    target_groups: dict[str, list[str]] = defaultdict(list)
    for path in source_only:
        source_groups[basename(path)].append(path)
    for path in target_only:
        target_groups[basename(path)].append(path)

    candidates: list[PatchCandidate] = []
    for name, sources in source_groups.items():
        targets = target_groups.get(name, [])
        if len(sources) == 1 and len(targets) == 1:
            candidates.append(
                PatchCandidate(target_path=targets[0], source_path=sources[0], basename=name)
            )
        elif targets:
            logger.debug(
                "Skipping ambiguous basename %s (%d source, %d target)",
                name,
                len(sources),
                len(targets),
            )
    return sorted(candidates)


class PatchResolver:
    """Runs the binary-diff collaborator for every accepted candidate.

    Blobs land in ``<patch_store>/<target_path>``. A failure removes the
    whole patch store so the stage can be retried from a clean slate.
    """

    def __init__(self, config: PatchConfig | None = None, codec: PatchCodec | None = None) -> None:
        self.config = config or PatchConfig()
        self.codec = codec or create_codec(self.config)

    def resolve(
        self,
        source_root: Path,
        target_root: Path,
        source_only: list[str],
        target_only: list[str],
        patch_store: Path,
    ) -> list[PatchCandidate]:
        if not self.config.enabled:
            logger.info("Patching disabled, keeping one-sided files whole")
            return []

        candidates = find_candidates(source_only, target_only)
        if patch_store.exists():
            shutil.rmtree(patch_store)
        patch_store.mkdir(parents=True)
        logger.info("Computing %d patches with %s", len(candidates), self.codec.name)

        try:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                futures = [
                    pool.submit(self._encode, source_root, target_root, c, patch_store)
                    for c in candidates
                ]
                for future in futures:
                    future.result()
        except BaseException:
            shutil.rmtree(patch_store, ignore_errors=True)
            raise
        return candidates

    def _encode(
        self,
        source_root: Path,
        target_root: Path,
        candidate: PatchCandidate,
        patch_store: Path,
    ) -> None:
        out = patch_store / candidate.target_path
        out.parent.mkdir(parents=True, exist_ok=True)
        self.codec.encode(
            source_root / candidate.source_path,
            target_root / candidate.target_path,
            out,
        )
        logger.debug("Patch %s -> %s", candidate.source_path, candidate.target_path)
