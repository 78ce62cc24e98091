"""Binary diff collaborators."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

from gogdiff_core.config.models import PatchConfig
from gogdiff_core.errors import CollaboratorFailure

logger = logging.getLogger(__name__)


@runtime_checkable
class PatchCodec(Protocol):
    """Produces and applies binary patches.

    Must satisfy ``decode(old, encode(old, new)) == new`` byte for byte.
    """

    name: str

    def encode(self, old: Path, new: Path, out: Path) -> None: ...

    def decode(self, old: Path, patch: Path, out: Path) -> None: ...


class XDelta3Codec:
    """Shells out to the xdelta3 command-line tool."""

    name = "xdelta3"

    def __init__(self, executable: str = "xdelta3", timeout: int | None = None) -> None:
        self.executable = executable
        self.timeout = timeout

    def encode(self, old: Path, new: Path, out: Path) -> None:
        self._run("encode", ["-e", "-f", "-s", str(old), str(new), str(out)])

    def decode(self, old: Path, patch: Path, out: Path) -> None:
        self._run("decode", ["-d", "-f", "-s", str(old), str(patch), str(out)])

    def _run(self, operation: str, args: list[str]) -> None:
        argv = [self.executable, *args]
        logger.debug("Running %s", argv)
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CollaboratorFailure(self.name, operation, e) from e
        except subprocess.TimeoutExpired as e:
            raise CollaboratorFailure(self.name, operation, e) from e

        if result.returncode != 0:
            raise CollaboratorFailure(
                self.name,
                operation,
                f"exit {result.returncode}: {result.stderr.strip()[:200]}",
            )


def create_codec(config: PatchConfig | None = None) -> PatchCodec:
    """Factory for the configured codec."""
    config = config or PatchConfig()
    if config.codec == "xdelta3":
        return XDelta3Codec(config.executable)
    raise ValueError(f"Unknown patch codec: {config.codec!r}")
