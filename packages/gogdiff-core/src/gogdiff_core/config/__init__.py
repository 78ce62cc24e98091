from .loader import DEFAULT_CONFIG_TEMPLATE, load_config
from .models import (
    ArchiveConfig,
    ArtifactConfig,
    GogdiffConfig,
    IndexConfig,
    PatchConfig,
    PopulationConfig,
)

__all__ = [
    "ArchiveConfig",
    "ArtifactConfig",
    "DEFAULT_CONFIG_TEMPLATE",
    "GogdiffConfig",
    "IndexConfig",
    "PatchConfig",
    "PopulationConfig",
    "load_config",
]
