"""Tar payload appended after the artifact program."""

from __future__ import annotations

import tarfile
from pathlib import Path
from typing import BinaryIO, Iterable

from gogdiff_core.errors import CollaboratorFailure

WRITE_MODES = {
    "gz": "w:gz",
    "bz2": "w:bz2",
    "xz": "w:xz",
    "none": "w",
}


def _as_root(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = info.gid = 0
    info.uname = info.gname = "root"
    return info


def pack_archive(
    fileobj: BinaryIO,
    members: Iterable[tuple[str, Path]],
    compression: str = "gz",
) -> int:
    """Write ``(arcname, source)`` members to *fileobj* at its current position.

    Symlinks are stored as links and directories without their contents.
    GNU format keeps undecodable name bytes intact. Returns the member count.
    """
    try:
        mode = WRITE_MODES[compression]
    except KeyError:
        raise ValueError(f"Unknown compression: {compression!r}") from None

    count = 0
    try:
        with tarfile.open(fileobj=fileobj, mode=mode, format=tarfile.GNU_FORMAT) as tar:
            for arcname, source in sorted(members):
                tar.add(source, arcname=arcname, recursive=False, filter=_as_root)
                count += 1
    except (OSError, tarfile.TarError) as e:
        raise CollaboratorFailure("tarfile", "pack", e) from e
    return count


def unpack_archive(fileobj: BinaryIO, dest: Path) -> list[str]:
    """Extract a payload stream into *dest*; returns member names."""
    try:
        with tarfile.open(fileobj=fileobj, mode="r|*") as tar:
            names: list[str] = []
            for member in tar:
                tar.extract(member, dest, filter="fully_trusted")
                names.append(member.name)
    except (OSError, tarfile.TarError) as e:
        raise CollaboratorFailure("tarfile", "unpack", e) from e
    return names
