"""Patch candidate resolver and binary-diff collaborators."""

from gogdiff_core.patches.codec import PatchCodec, XDelta3Codec, create_codec
from gogdiff_core.patches.models import PatchCandidate, load_candidates, save_candidates
from gogdiff_core.patches.resolver import PatchResolver, basename, find_candidates

__all__ = [
    "PatchCandidate",
    "PatchCodec",
    "PatchResolver",
    "XDelta3Codec",
    "basename",
    "create_codec",
    "find_candidates",
    "load_candidates",
    "save_candidates",
]
