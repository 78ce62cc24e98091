import hashlib
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class IndexConfig(BaseModel):
    algorithm: str = "sha256"
    workers: int = Field(default=8, gt=0)

    @field_validator("algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        try:
            hashlib.new(value)
        except ValueError as e:
            raise ValueError(f"unsupported digest algorithm {value!r}") from e
        return value


class PatchConfig(BaseModel):
    enabled: bool = True
    codec: Literal["xdelta3"] = "xdelta3"
    executable: str = "xdelta3"
    workers: int = Field(default=4, gt=0)


class ArchiveConfig(BaseModel):
    compression: Literal["gz", "bz2", "xz", "none"] = "gz"


class ArtifactConfig(BaseModel):
    name: str = "gogdiff_delta.sh"
    python: str = Field(default="python3", pattern=r"^[\w./+-]+$")
    offset_width: int = Field(default=16, ge=12)


class PopulationConfig(BaseModel):
    wine: str = "wine"
    source_subdir: str = "drive_c/goggame"
    timeout: int | None = Field(default=None, gt=0)


class GogdiffConfig(BaseModel):
    index: IndexConfig = Field(default_factory=IndexConfig)
    patch: PatchConfig = Field(default_factory=PatchConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)
    artifact: ArtifactConfig = Field(default_factory=ArtifactConfig)
    population: PopulationConfig = Field(default_factory=PopulationConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
