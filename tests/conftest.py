"""Shared test fixtures for gogdiff."""

from __future__ import annotations

import os
import shutil
import stat
import subprocess
import sys
from pathlib import Path

import pytest

from gogdiff_core.config.models import GogdiffConfig
from gogdiff_core.index import TreeIndexer, TreeScan
from gogdiff_core.pipeline import Pipeline, RunContext


def make_tree(
    root: Path,
    files: dict[str, bytes | str],
    symlinks: dict[str, str] | None = None,
    empty_dirs: list[str] | None = None,
) -> Path:
    """Materialize a tree from a path -> content mapping."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode()
        path.write_bytes(content)
    for rel, target in (symlinks or {}).items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.symlink_to(target)
    for rel in empty_dirs or []:
        (root / rel).mkdir(parents=True, exist_ok=True)
    return root


def snapshot(root: Path) -> dict[str, tuple]:
    """Every entry under *root*, by kind, content or link target."""
    out: dict[str, tuple] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            rel = path.relative_to(root).as_posix()
            if path.is_symlink():
                out[rel] = ("link", os.readlink(path))
            elif path.is_dir():
                out[rel] = ("dir",)
            else:
                out[rel] = ("file", path.read_bytes())
    return out


def scan(root: Path) -> TreeScan:
    return TreeIndexer().scan(root)


class CopyCodec:
    """Stand-in diff codec whose patch is simply the new file."""

    name = "xdelta3"

    def __init__(self) -> None:
        self.encoded: list[tuple[Path, Path]] = []

    def encode(self, old: Path, new: Path, out: Path) -> None:
        self.encoded.append((old, new))
        shutil.copyfile(new, out)

    def decode(self, old: Path, patch: Path, out: Path) -> None:
        shutil.copyfile(patch, out)


@pytest.fixture
def copy_codec() -> CopyCodec:
    return CopyCodec()


@pytest.fixture
def fake_xdelta3(tmp_path: Path) -> Path:
    """Decoder with xdelta3's ``-d -f -s BASE PATCH OUT`` argv that copies PATCH."""
    script = tmp_path / "bin" / "fake-xdelta3"
    script.parent.mkdir()
    script.write_text('#!/bin/sh\n[ "$1" = "-d" ] || exit 2\nexec cp "$5" "$6"\n')
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def config() -> GogdiffConfig:
    return GogdiffConfig()


def build_artifact(
    tmp_path: Path,
    source: Path,
    target: Path,
    codec=None,
    config: GogdiffConfig | None = None,
) -> Path:
    """Run the whole pipeline on two directory trees; return the artifact path."""
    ctx = RunContext.create(source, target, tmp_path / "out", config)
    report = Pipeline(ctx, codec=codec or CopyCodec()).run()
    assert report.artifact is not None
    return report.artifact


def run_artifact(
    artifact: Path,
    workdir: Path,
    xdelta3: Path | None = None,
    **env: str,
) -> subprocess.CompletedProcess:
    """Execute an artifact with /bin/sh inside *workdir*."""
    full_env = dict(os.environ)
    full_env["GOGDIFF_PYTHON"] = sys.executable
    if xdelta3 is not None:
        full_env["GOGDIFF_XDELTA3"] = str(xdelta3)
    full_env.update(env)
    return subprocess.run(
        ["/bin/sh", str(artifact)],
        cwd=workdir,
        env=full_env,
        capture_output=True,
        text=True,
        timeout=120,
    )


def working_copy(source: Path, dest: Path) -> Path:
    shutil.copytree(source, dest, symlinks=True)
    return dest
