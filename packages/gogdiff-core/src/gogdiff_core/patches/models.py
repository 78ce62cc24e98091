"""Data models for patch candidates."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, order=True)
class PatchCandidate:
    """A source-only and a target-only file sharing a unique basename."""

    target_path: str
    source_path: str
    basename: str


def save_candidates(candidates: list[PatchCandidate], path: Path) -> None:
    data = [
        {"basename": c.basename, "source_path": c.source_path, "target_path": c.target_path}
        for c in candidates
    ]
    path.write_text(json.dumps(data, indent=2, ensure_ascii=True))


def load_candidates(path: Path) -> list[PatchCandidate]:
    return sorted(
        PatchCandidate(
            target_path=d["target_path"],
            source_path=d["source_path"],
            basename=d["basename"],
        )
        for d in json.loads(path.read_text())
    )
