"""
Places Verification: Name Similarity

Normalised Levenshtein similarity between a local POI title and the display
name of a Places candidate.  Normalisation is deliberately light (case and
surrounding whitespace only) because distance, not name, carries most of
the matching weight.

Dependencies:
    pip install rapidfuzz
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def normalize_name(name: str | None) -> str:
    """Lowercase and trim a place name for comparison."""
    if not name:
        return ""
    return name.lower().strip()


def name_similarity(name_a: str | None, name_b: str | None) -> float:
    """
    Normalised Levenshtein similarity between two names.

    Returns a value in [0.0, 1.0]:
        - identical after normalisation → 1.0 (two empty names included)
        - exactly one name empty        → 0.0
        - otherwise 1 - distance / max(len_a, len_b)
    """
    a = normalize_name(name_a)
    b = normalize_name(name_b)

    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    max_len = max(len(a), len(b))
    dist = Levenshtein.distance(a, b)
    return max(0.0, min(1.0, 1.0 - (dist / max_len)))
