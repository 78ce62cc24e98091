"""The closed instruction set executed by the artifact runtime.

Each operation serializes to a JSON record ``[tag, *args]``; the tags are
the keys of ``gogdiff_core.runtime.OPERATIONS``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from typing import ClassVar, Iterable, Union


@dataclass(frozen=True)
class _Operation:
    tag: ClassVar[str]

    def to_record(self) -> list:
        return [self.tag, *(getattr(self, f.name) for f in fields(self))]


@dataclass(frozen=True)
class Move(_Operation):
    """Rename *src* to *dst*; fails if *dst* exists unless *overwrite*."""

    tag: ClassVar[str] = "move"
    src: str
    dst: str
    overwrite: bool = False

    def to_record(self) -> list:
        record = [self.tag, self.src, self.dst]
        if self.overwrite:
            record.append(True)
        return record


@dataclass(frozen=True)
class LinkOrCopy(_Operation):
    tag: ClassVar[str] = "link"
    src: str
    dst: str


@dataclass(frozen=True)
class Remove(_Operation):
    tag: ClassVar[str] = "remove"
    path: str


@dataclass(frozen=True)
class RemoveEmptyDir(_Operation):
    tag: ClassVar[str] = "rmdir"
    path: str


@dataclass(frozen=True)
class ExtractArchive(_Operation):
    tag: ClassVar[str] = "extract"
    dest: str


@dataclass(frozen=True)
class ApplyPatch(_Operation):
    """Decode *patch* against *base* into *output*, then drop both inputs."""

    tag: ClassVar[str] = "patch"
    base: str
    patch: str
    output: str


@dataclass(frozen=True)
class Verify(_Operation):
    tag: ClassVar[str] = "verify"


TransformationOp = Union[Move, LinkOrCopy, Remove, RemoveEmptyDir, ExtractArchive, ApplyPatch, Verify]

ALL_OPERATIONS: tuple[type[_Operation], ...] = (
    Move,
    LinkOrCopy,
    Remove,
    RemoveEmptyDir,
    ExtractArchive,
    ApplyPatch,
    Verify,
)


def serialize_operations(operations: Iterable[TransformationOp]) -> str:
    """One ASCII-only JSON record per line."""
    return "".join(json.dumps(op.to_record(), ensure_ascii=True) + "\n" for op in operations)
