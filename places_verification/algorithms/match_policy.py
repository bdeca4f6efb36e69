"""
Places Verification: Match Adjudication

Tiered acceptance policy and scoring for Places candidates.  Distance is
the primary signal; name similarity only gates the outer tiers and breaks
ties, so a very close but differently-named place outranks a farther,
better-named one.

Acceptance tiers:
    distance <= very_close        → accept regardless of name
    distance <= close             → accept if similarity >= low
    distance <= far               → accept if similarity >= high
    otherwise                     → reject

Score of an accepted candidate:
    total = w_distance * (1 - distance / far) + w_name * similarity

Dependencies:
    pip install rapidfuzz pyyaml
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .geo_proximity import distance_km
from .name_similarity import name_similarity


# ---------------------------------------------------------------------------
# Defaults (overridden by match_rules.yaml at runtime)
# ---------------------------------------------------------------------------

_DEFAULT_DISTANCES_KM = {
    "very_close": 0.05,
    "close": 0.1,
    "far": 0.5,
}

_DEFAULT_SIMILARITY = {
    "low": 0.3,
    "high": 0.6,
}

_DEFAULT_WEIGHTS = {
    "distance": 0.7,
    "name": 0.3,
}

DEFAULT_RULES_PATH = Path(__file__).resolve().parent.parent / "match_rules.yaml"

TIER_VERY_CLOSE = "very_close"
TIER_CLOSE = "close"
TIER_FAR = "far"


# ---------------------------------------------------------------------------
# Configuration loader
# ---------------------------------------------------------------------------


@dataclass
class MatchConfig:
    """Thresholds and weights for candidate adjudication."""

    distances_km: dict[str, float] = field(default_factory=lambda: dict(_DEFAULT_DISTANCES_KM))
    similarity: dict[str, float] = field(default_factory=lambda: dict(_DEFAULT_SIMILARITY))
    weights: dict[str, float] = field(default_factory=lambda: dict(_DEFAULT_WEIGHTS))

    @property
    def very_close_km(self) -> float:
        return self.distances_km["very_close"]

    @property
    def close_km(self) -> float:
        return self.distances_km["close"]

    @property
    def far_km(self) -> float:
        return self.distances_km["far"]

    @classmethod
    def from_yaml(cls, path: str | Path) -> "MatchConfig":
        """Load configuration from a YAML file, falling back to defaults per key."""
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        distances_raw = raw.get("distance_thresholds_km", {})
        similarity_raw = raw.get("name_similarity_thresholds", {})
        weights_raw = raw.get("score_weights", {})

        config = cls(
            distances_km={
                key: float(distances_raw.get(key, default))
                for key, default in _DEFAULT_DISTANCES_KM.items()
            },
            similarity={
                key: float(similarity_raw.get(key, default))
                for key, default in _DEFAULT_SIMILARITY.items()
            },
            weights={
                key: float(weights_raw.get(key, default))
                for key, default in _DEFAULT_WEIGHTS.items()
            },
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ValueError if the tiers are not strictly increasing."""
        if not (0 < self.very_close_km < self.close_km < self.far_km):
            raise ValueError(
                "distance thresholds must satisfy 0 < very_close < close < far, "
                f"got {self.distances_km}"
            )
        for key, value in self.similarity.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"similarity threshold '{key}' out of range: {value}")


def load_match_config(path: str | Path | None = None) -> MatchConfig:
    """Load the given rules file, or the packaged defaults when None."""
    if path is None:
        if DEFAULT_RULES_PATH.exists():
            return MatchConfig.from_yaml(DEFAULT_RULES_PATH)
        return MatchConfig()
    return MatchConfig.from_yaml(path)


# ---------------------------------------------------------------------------
# Match result
# ---------------------------------------------------------------------------


@dataclass
class MatchResult:
    """Distance/similarity evaluation of one candidate against one record."""

    candidate: Any  # records.Candidate
    distance_km: float
    name_similarity: float
    distance_score: float
    total_score: float
    tier: str | None  # "very_close" | "close" | "far" | None (rejected)

    @property
    def accepted(self) -> bool:
        return self.tier is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "place_id": getattr(self.candidate, "place_id", None),
            "distance_km": round(self.distance_km, 4),
            "name_similarity": round(self.name_similarity, 4),
            "distance_score": round(self.distance_score, 4),
            "total_score": round(self.total_score, 4),
            "tier": self.tier,
        }


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


def acceptance_tier(
    distance: float,
    similarity: float,
    config: MatchConfig | None = None,
) -> str | None:
    """
    Return the tier under which a (distance, similarity) pair is accepted,
    or None when every tier rejects it.
    """
    if config is None:
        config = MatchConfig()

    if distance <= config.very_close_km:
        return TIER_VERY_CLOSE
    if distance <= config.close_km:
        return TIER_CLOSE if similarity >= config.similarity["low"] else None
    if distance <= config.far_km:
        return TIER_FAR if similarity >= config.similarity["high"] else None
    return None


def score_candidate(
    latitude: float,
    longitude: float,
    name: str,
    candidate: Any,
    config: MatchConfig | None = None,
) -> MatchResult:
    """
    Evaluate one candidate against the query point and name.

    A candidate without a location is treated as infinitely far away and
    therefore always rejected.
    """
    if config is None:
        config = MatchConfig()

    similarity = name_similarity(name, candidate.name)
    if candidate.latitude is None or candidate.longitude is None:
        dist = math.inf
    else:
        dist = distance_km(latitude, longitude, candidate.latitude, candidate.longitude)

    distance_score = 1.0 - (dist / config.far_km) if math.isfinite(dist) else 0.0
    total = (
        config.weights["distance"] * distance_score
        + config.weights["name"] * similarity
    )

    return MatchResult(
        candidate=candidate,
        distance_km=dist,
        name_similarity=similarity,
        distance_score=distance_score,
        total_score=total,
        tier=acceptance_tier(dist, similarity, config),
    )


def is_acceptable(match: MatchResult | None, config: MatchConfig | None = None) -> bool:
    """Re-validate a match against the tiers (independent of its stored tier)."""
    if match is None:
        return False
    return acceptance_tier(match.distance_km, match.name_similarity, config) is not None


def better_match(current: MatchResult | None, challenger: MatchResult) -> MatchResult | None:
    """
    Return whichever of two matches should be kept.

    Rejected challengers never replace anything; an accepted challenger
    replaces the current best only with a strictly higher total score.
    """
    if not challenger.accepted:
        return current
    if current is None or challenger.total_score > current.total_score:
        return challenger
    return current


def best_of(
    latitude: float,
    longitude: float,
    name: str,
    candidates: list[Any],
    config: MatchConfig | None = None,
    current: MatchResult | None = None,
) -> MatchResult | None:
    """Fold a batch of candidates into the running best match."""
    best = current
    for candidate in candidates:
        best = better_match(best, score_candidate(latitude, longitude, name, candidate, config))
    return best
