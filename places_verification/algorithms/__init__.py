"""Places Verification: matching algorithms."""

from .name_similarity import (
    name_similarity,
    normalize_name,
)
from .geo_proximity import (
    Coordinate,
    bounding_box_filter,
    distance_km,
    find_nearby,
    haversine_km,
)
from .match_policy import (
    MatchConfig,
    MatchResult,
    acceptance_tier,
    best_of,
    better_match,
    is_acceptable,
    load_match_config,
    score_candidate,
)

__all__ = [
    "name_similarity",
    "normalize_name",
    "Coordinate",
    "bounding_box_filter",
    "distance_km",
    "find_nearby",
    "haversine_km",
    "MatchConfig",
    "MatchResult",
    "acceptance_tier",
    "best_of",
    "better_match",
    "is_acceptable",
    "load_match_config",
    "score_candidate",
]
