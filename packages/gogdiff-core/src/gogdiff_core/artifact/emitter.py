"""Serializes a transformation plan into a single self-extracting file.

Byte layout::

    [sh launcher][python header with offset placeholder][runtime]
    [operation records][escaped manifest][stop instruction][tar payload]

The launcher re-executes the file's program text with Python through a
quoted here-document; the ``exit`` after the here-document keeps the
shell from ever reading the binary payload.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from importlib import resources
from pathlib import Path

from gogdiff_core.artifact.archive import pack_archive
from gogdiff_core.config.models import GogdiffConfig
from gogdiff_core.planner.ops import serialize_operations
from gogdiff_core.planner.planner import TransformationPlan
from gogdiff_core.runtime import format_manifest_line

logger = logging.getLogger(__name__)

PROGRAM_DELIMITER = "GOGDIFF_PROGRAM"
PLACEHOLDER_CHAR = "X"

_LAUNCHER = """\
#!/bin/sh
# gogdiff delta script: run it from a copy of the source tree to turn that
# copy into the target tree. Environment toggles: GOGDIFF_EXTRACTONLY,
# GOGDIFF_NOLINKS, GOGDIFF_SKIPDIGESTS, GOGDIFF_VERBOSE, GOGDIFF_PYTHON.
exec "${{GOGDIFF_PYTHON:-{python}}}" - "$0" "$@" <<'{delimiter}'
"""


@dataclass(frozen=True)
class EmittedArtifact:
    path: Path
    header_length: int
    payload_members: int
    size: int


def runtime_source() -> str:
    return resources.files("gogdiff_core").joinpath("runtime.py").read_text(encoding="utf-8")


def placeholder(width: int) -> str:
    return PLACEHOLDER_CHAR * width


def render_program(plan: TransformationPlan, config: GogdiffConfig) -> str:
    """Program text with the offset placeholder still in place."""
    header = (
        f'PAYLOAD_OFFSET = int("{placeholder(config.artifact.offset_width)}")\n'
        "HEADER = {\n"
        '    "payload_offset": PAYLOAD_OFFSET,\n'
        f'    "algorithm": {plan.algorithm!r},\n'
        f'    "codec": {config.patch.codec!r},\n'
        f'    "staging": {list(plan.staging)!r},\n'
        "}\n"
    )
    manifest = "".join(
        format_manifest_line(e.digest, e.path) + "\n"
        for e in sorted(plan.manifest, key=lambda e: e.path)
    )
    return "".join([
        _LAUNCHER.format(python=config.artifact.python, delimiter=PROGRAM_DELIMITER),
        header,
        "\n",
        runtime_source(),
        "\n\n",
        'OPERATION_RECORDS = r"""\n',
        serialize_operations(plan.operations),
        '"""\n\n',
        'MANIFEST = r"""\n',
        manifest,
        '"""\n\n',
        "sys.exit(main(sys.argv, HEADER, OPERATION_RECORDS, MANIFEST))\n",
        f"{PROGRAM_DELIMITER}\n",
        "exit 1\n",
    ])


def finalize_offset(program: bytes, width: int) -> bytes:
    """Write the program's own byte length over the header placeholder.

    The value is left-justified to the placeholder width, so the program
    length, and therefore the value itself, does not change.
    """
    token = placeholder(width).encode()
    start = program.index(b'"' + token + b'"') + 1
    value = str(len(program)).encode().ljust(width)
    if len(value) > width:
        raise ValueError(f"program of {len(program)} bytes overflows a {width}-wide offset")
    return program[:start] + value + program[start + width:]


class ArtifactEmitter:
    """Writes the artifact atomically: temp file in the output dir, then rename."""

    def __init__(self, config: GogdiffConfig | None = None) -> None:
        self.config = config or GogdiffConfig()

    def emit(
        self,
        plan: TransformationPlan,
        target_root: Path,
        patch_store: Path,
        output: Path,
    ) -> EmittedArtifact:
        program = render_program(plan, self.config).encode("utf-8")
        program = finalize_offset(program, self.config.artifact.offset_width)

        members = [
            (e.arcname, (patch_store if e.kind == "patch" else target_root) / e.arcname)
            for e in plan.payload
        ]

        output.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=output.parent, prefix=".gogdiff-", suffix=".tmp")
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(program)
                count = pack_archive(f, members, self.config.archive.compression)
            tmp.chmod(0o755)
            os.replace(tmp, output)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        size = output.stat().st_size
        logger.info(
            "Wrote %s: %d bytes of program, %d payload members, %d bytes total",
            output,
            len(program),
            count,
            size,
        )
        return EmittedArtifact(
            path=output,
            header_length=len(program),
            payload_members=count,
            size=size,
        )
