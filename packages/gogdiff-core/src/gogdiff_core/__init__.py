"""gogdiff core - tree fingerprinting, delta planning and artifact emission."""

from gogdiff_core.artifact import ArtifactEmitter
from gogdiff_core.config import GogdiffConfig, load_config
from gogdiff_core.errors import ExitCode, GogdiffError
from gogdiff_core.index import TreeIndexer, TreeScan
from gogdiff_core.patches import PatchResolver, find_candidates
from gogdiff_core.pipeline import BuildReport, Pipeline, RunContext, Stage
from gogdiff_core.planner import TransformationPlan, TransformationPlanner
from gogdiff_core.reconcile import enforce_policy, reconcile

__version__ = "0.1.0"

__all__ = [
    "ArtifactEmitter",
    "BuildReport",
    "ExitCode",
    "GogdiffConfig",
    "GogdiffError",
    "Pipeline",
    "PatchResolver",
    "RunContext",
    "Stage",
    "TransformationPlan",
    "TransformationPlanner",
    "TreeIndexer",
    "TreeScan",
    "enforce_policy",
    "find_candidates",
    "load_config",
    "reconcile",
]
