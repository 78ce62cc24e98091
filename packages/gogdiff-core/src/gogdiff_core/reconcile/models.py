"""Data models for reconciliation between two fingerprint indexes."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from gogdiff_core.patches.models import PatchCandidate


@dataclass(frozen=True)
class ReconciliationResult:
    """Set algebra between a source and a target tree."""

    common_digests: tuple[str, ...] = ()
    source_only: tuple[str, ...] = ()
    target_only: tuple[str, ...] = ()

    def without_patches(self, candidates: Iterable[PatchCandidate]) -> ReconciliationResult:
        """Drop patch bases and patch targets from the one-sided sets."""
        candidates = list(candidates)
        bases = {c.source_path for c in candidates}
        targets = {c.target_path for c in candidates}
        return ReconciliationResult(
            common_digests=self.common_digests,
            source_only=tuple(p for p in self.source_only if p not in bases),
            target_only=tuple(p for p in self.target_only if p not in targets),
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "common_digests": list(self.common_digests),
                "source_only": list(self.source_only),
                "target_only": list(self.target_only),
            },
            indent=2,
            ensure_ascii=True,
        )

    @classmethod
    def from_json(cls, data: str) -> ReconciliationResult:
        obj = json.loads(data)
        return cls(
            common_digests=tuple(obj.get("common_digests", [])),
            source_only=tuple(obj.get("source_only", [])),
            target_only=tuple(obj.get("target_only", [])),
        )

    def save(self, path: Path) -> None:
        path.write_text(self.to_json())

    @classmethod
    def load(cls, path: Path) -> ReconciliationResult:
        return cls.from_json(path.read_text())
