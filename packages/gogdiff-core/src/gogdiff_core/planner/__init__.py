"""Transformation planner and the artifact instruction set."""

from gogdiff_core.planner.ops import (
    ALL_OPERATIONS,
    ApplyPatch,
    ExtractArchive,
    LinkOrCopy,
    Move,
    Remove,
    RemoveEmptyDir,
    TransformationOp,
    Verify,
    serialize_operations,
)
from gogdiff_core.planner.planner import (
    STAGING_PREFIX,
    PayloadEntry,
    TransformationPlan,
    TransformationPlanner,
    choose_staging_names,
)

__all__ = [
    "ALL_OPERATIONS",
    "ApplyPatch",
    "ExtractArchive",
    "LinkOrCopy",
    "Move",
    "PayloadEntry",
    "Remove",
    "RemoveEmptyDir",
    "STAGING_PREFIX",
    "TransformationOp",
    "TransformationPlan",
    "TransformationPlanner",
    "Verify",
    "choose_staging_names",
    "serialize_operations",
]
