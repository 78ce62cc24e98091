"""Content fingerprinting for a directory tree."""

from __future__ import annotations

import hashlib
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from gogdiff_core.config.models import IndexConfig
from gogdiff_core.errors import PreconditionError
from gogdiff_core.index.models import (
    FileFingerprint,
    FingerprintIndex,
    TreeLayout,
    TreeScan,
)

logger = logging.getLogger(__name__)


def compute_digest(content: bytes, algorithm: str = "sha256") -> str:
    """Hex digest of an in-memory byte string."""
    return hashlib.new(algorithm, content).hexdigest()


def compute_file_digest(path: Path, algorithm: str = "sha256") -> str:
    """Stream a file from disk and return its hex digest."""
    with open(path, "rb") as f:
        return hashlib.file_digest(f, algorithm).hexdigest()


def walk_tree(root: Path) -> tuple[list[str], TreeLayout]:
    """List regular files under *root* and record its non-file layout.

    Symlinks are never followed, including symlinks to directories. Paths
    are POSIX-style and relative to *root*.
    """
    files: list[str] = []
    directories: list[str] = []
    empty: list[str] = []
    symlinks: list[tuple[str, str]] = []

    pending = [""]
    while pending:
        rel_dir = pending.pop()
        abs_dir = os.path.join(root, rel_dir) if rel_dir else os.fspath(root)
        try:
            with os.scandir(abs_dir) as it:
                children = list(it)
        except OSError as e:
            raise PreconditionError(f"cannot list {abs_dir}: {e.strerror}") from e

        if rel_dir and not children:
            empty.append(rel_dir)

        for entry in children:
            rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            if entry.is_symlink():
                symlinks.append((rel, os.readlink(entry.path)))
            elif entry.is_dir(follow_symlinks=False):
                directories.append(rel)
                pending.append(rel)
            elif entry.is_file(follow_symlinks=False):
                files.append(rel)
            else:
                # Neither archivable nor removable by the artifact.
                raise PreconditionError(f"unsupported special file: {entry.path}")

    layout = TreeLayout(
        directories=tuple(directories),
        empty_directories=tuple(empty),
        symlinks=tuple(symlinks),
    )
    return files, layout


class TreeIndexer:
    """Hashes every regular file of a tree on a bounded thread pool."""

    def __init__(self, config: IndexConfig | None = None) -> None:
        self.config = config or IndexConfig()

    def index(self, root: Path) -> FingerprintIndex:
        return self.scan(root).index

    def scan(self, root: Path) -> TreeScan:
        """Fingerprint *root*; any unreadable file aborts the whole scan."""
        root = Path(root).resolve()
        if not root.is_dir():
            raise PreconditionError(f"not a directory: {root}")

        files, layout = walk_tree(root)
        logger.info("Hashing %d files under %s", len(files), root)
        entries = self._hash_files(root, files)

        index = FingerprintIndex(
            root=os.fspath(root),
            algorithm=self.config.algorithm,
            entries=tuple(entries),
        )
        return TreeScan(index=index, layout=layout)

    def _hash_files(self, root: Path, files: list[str]) -> list[FileFingerprint]:
        algorithm = self.config.algorithm
        entries: list[FileFingerprint] = []
        pool = ThreadPoolExecutor(max_workers=self.config.workers)
        try:
            futures = {
                pool.submit(compute_file_digest, root / rel, algorithm): rel
                for rel in files
            }
            for future in as_completed(futures):
                rel = futures[future]
                try:
                    digest = future.result()
                except OSError as e:
                    raise PreconditionError(f"cannot read {root / rel}: {e.strerror}") from e
                entries.append(FileFingerprint(digest=digest, path=rel))
        finally:
            pool.shutdown(wait=True, cancel_futures=True)
        return entries
