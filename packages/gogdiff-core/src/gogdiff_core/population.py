"""Materializes the source and target trees from installers.

An input that is already a directory is used as-is. Anything else is run
as an installer: the source side is a Windows installer driven through
wine, the target side a Linux installer run unattended.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Literal

from gogdiff_core.config.models import PopulationConfig
from gogdiff_core.errors import PopulationFailure, PreconditionError

logger = logging.getLogger(__name__)

Side = Literal["source", "target"]

WINE_PREFIX_DIR = "windows"
LINUX_INSTALL_DIR = "linux"
JUNK_DIR = "junk"


@contextmanager
def space_free_alias(target: Path) -> Iterator[Path]:
    """Yield a path under /tmp that is a symlink to *target*.

    The Linux installer rejects destinations containing spaces; the alias
    has none. It is removed on every exit path.
    """
    holder = Path(tempfile.mkdtemp(prefix="gogdiff-", dir="/tmp"))
    alias = holder / "out"
    try:
        alias.symlink_to(target, target_is_directory=True)
        yield alias
    finally:
        alias.unlink(missing_ok=True)
        holder.rmdir()


def relay_output(side: str, argv: list[str], env: dict[str, str], timeout: int | None = None) -> int:
    """Run *argv*, relaying each output line to ``gogdiff.population.<side>``."""
    side_logger = logging.getLogger(f"gogdiff.population.{side}")
    side_logger.debug("Running %s", argv)
    proc = subprocess.Popen(
        argv,
        env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
    )
    timed_out = threading.Event()

    def _kill() -> None:
        timed_out.set()
        proc.kill()

    timer = threading.Timer(timeout, _kill) if timeout else None
    if timer:
        timer.start()
    try:
        assert proc.stdout is not None
        for line in proc.stdout:
            line = line.rstrip("\n")
            if line:
                side_logger.info("%s", line)
        returncode = proc.wait()
    finally:
        if timer:
            timer.cancel()
    if timed_out.is_set():
        raise subprocess.TimeoutExpired(argv, timeout)
    return returncode


class TreePopulator:
    """Resolves where each tree lives and runs the installers that fill it."""

    def __init__(self, config: PopulationConfig | None = None) -> None:
        self.config = config or PopulationConfig()

    def tree_root(self, side: Side, installer: Path, output_dir: Path) -> Path:
        """Where the *side* tree is, or will be once populated."""
        if installer.is_dir():
            return installer
        if side == "source":
            return output_dir / WINE_PREFIX_DIR / self.config.source_subdir
        return output_dir / LINUX_INSTALL_DIR

    def populate(self, side: Side, installer: Path, output_dir: Path) -> Path:
        if not installer.exists():
            raise PreconditionError(f"{side} input does not exist: {installer}")
        root = self.tree_root(side, installer, output_dir)
        if installer.is_dir():
            logger.info("The %s input is a directory, using it as-is", side)
            return root

        try:
            if side == "source":
                self._run_windows_installer(installer, output_dir)
            else:
                self._run_linux_installer(installer, output_dir)
        except (OSError, subprocess.SubprocessError) as e:
            raise PopulationFailure(side, e) from e

        if not root.is_dir():
            raise PopulationFailure(side, f"installer finished but {root} does not exist")
        logger.info("The %s tree is ready at %s", side, root)
        return root

    def _run_windows_installer(self, installer: Path, output_dir: Path) -> None:
        logger.info("Launching the Windows installer; do not change its folder or run the game")
        prefix = output_dir / WINE_PREFIX_DIR
        shutil.rmtree(prefix, ignore_errors=True)
        prefix.mkdir(parents=True)

        env = dict(os.environ)
        env["WINEPREFIX"] = str(prefix)
        env["WINEDLLOVERRIDES"] = "winemenubuilder.exe=d"
        install_dir = "c:\\" + self.config.source_subdir.split("/", 1)[-1].replace("/", "\\")
        argv = [self.config.wine, str(installer), "/NOICONS", f"/DIR={install_dir}"]
        returncode = relay_output("source", argv, env, self.config.timeout)
        if returncode != 0:
            raise PopulationFailure("source", f"installer exited with status {returncode}")

    def _run_linux_installer(self, installer: Path, output_dir: Path) -> None:
        logger.info("Launching the Linux installer unattended")
        linux_dir = output_dir / LINUX_INSTALL_DIR
        junk_dir = output_dir / JUNK_DIR
        for path in (linux_dir, junk_dir):
            shutil.rmtree(path, ignore_errors=True)
            path.mkdir(parents=True)

        with space_free_alias(output_dir) as alias:
            env = dict(os.environ)
            # Installer side files (desktop entries, caches) land in the junk dir.
            env["HOME"] = str(alias / JUNK_DIR)
            argv = [
                str(installer),
                "--noprogress",
                "--",
                "--i-agree-to-all-licenses",
                "--noreadme",
                "--nooptions",
                "--noprompt",
                "--destination",
                str(alias / LINUX_INSTALL_DIR),
            ]
            returncode = relay_output("target", argv, env, self.config.timeout)
        if returncode != 0:
            raise PopulationFailure("target", f"installer exited with status {returncode}")
