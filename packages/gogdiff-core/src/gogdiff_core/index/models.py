"""Data models for tree fingerprints."""

from __future__ import annotations

import json
from bisect import bisect_left
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, order=True)
class FileFingerprint:
    """A regular file and the digest of its bytes.

    Field order makes (digest, path) the natural sort key, so duplicate
    content always resolves the same way from one run to the next.
    """

    digest: str
    path: str


@dataclass(frozen=True)
class FingerprintIndex:
    """Every regular file of one tree, sorted by (digest, path)."""

    root: str
    algorithm: str
    entries: tuple[FileFingerprint, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(sorted(self.entries)))

    def __len__(self) -> int:
        return len(self.entries)

    def paths(self) -> list[str]:
        return sorted(e.path for e in self.entries)

    def digests(self) -> list[str]:
        """Distinct digests in sorted order."""
        return sorted({e.digest for e in self.entries})

    def paths_for(self, digest: str) -> tuple[str, ...]:
        """All paths carrying *digest*, sorted."""
        i = bisect_left(self.entries, FileFingerprint(digest, ""))
        found: list[str] = []
        while i < len(self.entries) and self.entries[i].digest == digest:
            found.append(self.entries[i].path)
            i += 1
        return tuple(found)

    def is_identical_to(self, other: FingerprintIndex) -> bool:
        """True when both trees hold the same digests, with the same
        multiplicities, at the same paths.

        A pure rename is not identical: it still needs a delta.
        """
        return self.entries == other.entries

    def to_dict(self) -> dict:
        return {
            "root": self.root,
            "algorithm": self.algorithm,
            "entries": [[e.digest, e.path] for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> FingerprintIndex:
        return cls(
            root=data["root"],
            algorithm=data["algorithm"],
            entries=tuple(FileFingerprint(d, p) for d, p in data["entries"]),
        )


@dataclass(frozen=True)
class TreeLayout:
    """The parts of a tree that are not content-addressed."""

    directories: tuple[str, ...] = ()
    empty_directories: tuple[str, ...] = ()
    symlinks: tuple[tuple[str, str], ...] = ()  # (path, link target)

    def __post_init__(self) -> None:
        object.__setattr__(self, "directories", tuple(sorted(self.directories)))
        object.__setattr__(self, "empty_directories", tuple(sorted(self.empty_directories)))
        object.__setattr__(self, "symlinks", tuple(sorted(self.symlinks)))

    @property
    def symlink_paths(self) -> tuple[str, ...]:
        return tuple(p for p, _ in self.symlinks)

    def top_level_names(self) -> set[str]:
        names = {d.split("/", 1)[0] for d in self.directories}
        names.update(p.split("/", 1)[0] for p in self.symlink_paths)
        return names

    def to_dict(self) -> dict:
        return {
            "directories": list(self.directories),
            "empty_directories": list(self.empty_directories),
            "symlinks": [list(pair) for pair in self.symlinks],
        }

    @classmethod
    def from_dict(cls, data: dict) -> TreeLayout:
        return cls(
            directories=tuple(data.get("directories", [])),
            empty_directories=tuple(data.get("empty_directories", [])),
            symlinks=tuple((p, t) for p, t in data.get("symlinks", [])),
        )


@dataclass(frozen=True)
class TreeScan:
    """Fingerprints plus layout for one tree, as persisted in the state area."""

    index: FingerprintIndex
    layout: TreeLayout = field(default_factory=TreeLayout)

    @property
    def root(self) -> str:
        return self.index.root

    def top_level_names(self) -> set[str]:
        names = {e.path.split("/", 1)[0] for e in self.index.entries}
        return names | self.layout.top_level_names()

    def to_json(self) -> str:
        # ensure_ascii keeps surrogate-escaped (undecodable) path bytes intact
        return json.dumps(
            {"index": self.index.to_dict(), "layout": self.layout.to_dict()},
            indent=2,
            ensure_ascii=True,
        )

    @classmethod
    def from_json(cls, data: str) -> TreeScan:
        obj = json.loads(data)
        return cls(
            index=FingerprintIndex.from_dict(obj["index"]),
            layout=TreeLayout.from_dict(obj.get("layout", {})),
        )

    def save(self, path: Path) -> None:
        path.write_text(self.to_json())

    @classmethod
    def load(cls, path: Path) -> TreeScan:
        return cls.from_json(path.read_text())
