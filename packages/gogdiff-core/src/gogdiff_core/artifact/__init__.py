"""Artifact emitter: program text plus appended compressed payload."""

from gogdiff_core.artifact.archive import pack_archive, unpack_archive
from gogdiff_core.artifact.emitter import (
    PROGRAM_DELIMITER,
    ArtifactEmitter,
    EmittedArtifact,
    finalize_offset,
    render_program,
    runtime_source,
)

__all__ = [
    "ArtifactEmitter",
    "EmittedArtifact",
    "PROGRAM_DELIMITER",
    "finalize_offset",
    "pack_archive",
    "render_program",
    "runtime_source",
    "unpack_archive",
]
