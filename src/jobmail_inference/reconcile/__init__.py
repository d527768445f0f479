"""
Conflict and duplicate engine.

- similarity.py: Normalization and weighted string similarity (rapidfuzz)
- detector.py: DuplicateDetector (exact, fuzzy, domain, semantic, temporal)
- resolver.py: ConflictResolver (field conflicts, strategies, merge)
"""

from .detector import DuplicateCandidate, DuplicateDetector
from .resolver import ConflictResolver
from .similarity import advanced_similarity, normalize_job_title, normalize_text

__all__ = [
    "ConflictResolver",
    "DuplicateCandidate",
    "DuplicateDetector",
    "advanced_similarity",
    "normalize_job_title",
    "normalize_text",
]
