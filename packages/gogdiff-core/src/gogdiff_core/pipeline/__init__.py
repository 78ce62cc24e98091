"""Staged delta build with persisted, resumable state."""

from gogdiff_core.pipeline.context import RunContext, Stage
from gogdiff_core.pipeline.pipeline import BuildReport, Pipeline, atomic_save

__all__ = [
    "BuildReport",
    "Pipeline",
    "RunContext",
    "Stage",
    "atomic_save",
]
