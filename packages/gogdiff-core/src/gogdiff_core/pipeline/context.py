"""Run context and stage ordering for a delta build."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from gogdiff_core.config.models import GogdiffConfig

STATE_DIR = "state"
PATCH_STORE = "patches"

SOURCE_SCAN = "source.scan.json"
TARGET_SCAN = "target.scan.json"
RECONCILIATION = "reconcile.json"
PATCHES = "patches.json"


class Stage(str, Enum):
    POPULATE = "populate"
    INDEX = "index"
    RECONCILE = "reconcile"
    RESOLVE = "resolve"
    PLAN = "plan"

    @classmethod
    def ordered(cls) -> list[Stage]:
        return list(cls)

    def following(self) -> list[Stage]:
        """This stage and every later one."""
        stages = self.ordered()
        return stages[stages.index(self):]


# Persisted outputs of each stage, relative to the state dir.
STAGE_OUTPUTS: dict[Stage, tuple[str, ...]] = {
    Stage.POPULATE: (),
    Stage.INDEX: (SOURCE_SCAN, TARGET_SCAN),
    Stage.RECONCILE: (RECONCILIATION,),
    Stage.RESOLVE: (PATCHES,),
    Stage.PLAN: (),
}


@dataclass(frozen=True)
class RunContext:
    """Explicit paths for one build; every path is absolute."""

    source: Path
    target: Path
    output_dir: Path
    config: GogdiffConfig = field(default_factory=GogdiffConfig)

    @classmethod
    def create(
        cls,
        source: Path | str,
        target: Path | str,
        output_dir: Path | str,
        config: GogdiffConfig | None = None,
    ) -> RunContext:
        return cls(
            source=Path(source).absolute(),
            target=Path(target).absolute(),
            output_dir=Path(output_dir).absolute(),
            config=config or GogdiffConfig(),
        )

    @property
    def state_dir(self) -> Path:
        return self.output_dir / STATE_DIR

    @property
    def patch_store(self) -> Path:
        return self.output_dir / PATCH_STORE

    @property
    def artifact_path(self) -> Path:
        return self.output_dir / self.config.artifact.name

    def state_file(self, name: str) -> Path:
        return self.state_dir / name
