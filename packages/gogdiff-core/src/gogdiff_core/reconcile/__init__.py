"""Reconciliation engine: common, source-only and target-only content."""

from gogdiff_core.reconcile.engine import (
    difference,
    enforce_policy,
    intersection,
    reconcile,
)
from gogdiff_core.reconcile.models import ReconciliationResult

__all__ = [
    "ReconciliationResult",
    "difference",
    "enforce_policy",
    "intersection",
    "reconcile",
]
