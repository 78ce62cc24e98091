"""Tree indexer: content fingerprints for every regular file of a tree."""

from gogdiff_core.index.indexer import (
    TreeIndexer,
    compute_digest,
    compute_file_digest,
    walk_tree,
)
from gogdiff_core.index.models import (
    FileFingerprint,
    FingerprintIndex,
    TreeLayout,
    TreeScan,
)


def index_tree(*args, **kwargs) -> FingerprintIndex:
    """Convenience wrapper around TreeIndexer().index()."""
    return TreeIndexer().index(*args, **kwargs)


__all__ = [
    "FileFingerprint",
    "FingerprintIndex",
    "TreeIndexer",
    "TreeLayout",
    "TreeScan",
    "compute_digest",
    "compute_file_digest",
    "index_tree",
    "walk_tree",
]
