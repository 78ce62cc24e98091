"""Merge-join set algebra over digest-sorted fingerprint indexes."""

from __future__ import annotations

import logging

from gogdiff_core.errors import AllCommon, NoCommonContent
from gogdiff_core.index.models import FingerprintIndex
from gogdiff_core.reconcile.models import ReconciliationResult

logger = logging.getLogger(__name__)


def difference(a: FingerprintIndex, b: FingerprintIndex) -> list[str]:
    """Paths of *a* whose digest appears nowhere in *b*.

    Both entry lists are already sorted by digest, so one forward pass
    over each is enough.
    """
    left, right = a.entries, b.entries
    out: list[str] = []
    j = 0
    for entry in left:
        while j < len(right) and right[j].digest < entry.digest:
            j += 1
        if j >= len(right) or right[j].digest != entry.digest:
            out.append(entry.path)
    return sorted(out)


def intersection(a: FingerprintIndex, b: FingerprintIndex) -> list[str]:
    """Distinct digests present in both indexes, sorted."""
    left, right = a.entries, b.entries
    out: list[str] = []
    i = j = 0
    while i < len(left) and j < len(right):
        dl, dr = left[i].digest, right[j].digest
        if dl < dr:
            i += 1
        elif dr < dl:
            j += 1
        else:
            if not out or out[-1] != dl:
                out.append(dl)
            i += 1
            j += 1
    return out


def reconcile(source: FingerprintIndex, target: FingerprintIndex) -> ReconciliationResult:
    if source.algorithm != target.algorithm:
        raise ValueError(
            f"cannot reconcile {source.algorithm} against {target.algorithm} digests"
        )
    result = ReconciliationResult(
        common_digests=tuple(intersection(source, target)),
        source_only=tuple(difference(source, target)),
        target_only=tuple(difference(target, source)),
    )
    logger.info(
        "%d common digests, %d source-only files, %d target-only files",
        len(result.common_digests),
        len(result.source_only),
        len(result.target_only),
    )
    return result


def enforce_policy(
    source: FingerprintIndex,
    target: FingerprintIndex,
    result: ReconciliationResult,
    patch_count: int,
) -> None:
    """Refuse to go on when a delta would be useless.

    Runs after patch resolution, because near-identical files alone still
    make a delta worthwhile.
    """
    logger.info(
        "%d common digests and %d patchable files between the two trees",
        len(result.common_digests),
        patch_count,
    )
    if not result.common_digests and patch_count == 0:
        raise NoCommonContent()
    if source.is_identical_to(target):
        raise AllCommon()
