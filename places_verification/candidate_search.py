"""
Places Verification: Candidate Search and Detail Fetch

Coordinate-first lookup of the Places record that corresponds to a local
POI.  Nearby Search is run with an expanding radius; every returned place
is scored by the match policy, and the best accepted one is kept.  Only if
no radius yields an acceptable candidate is a free-text search issued.

Calls are strictly sequential.  A failing radius is skipped, a rate-limit
signal costs a fixed cooldown and abandons that step, and only an auth
failure propagates.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from .algorithms.match_policy import MatchConfig, MatchResult, best_of
from .places_client import PlacesRequestError, RateLimitError
from .records import Candidate, merge_details

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Search configuration
# ---------------------------------------------------------------------------

SEARCH_RADII_M = (500, 1000, 2000)

MAX_RESULT_COUNT = 20

INCLUDED_TYPES = [
    "tourist_attraction",
    "campground",
    "lodging",
    "spa",
    "beach",
    "park",
    "establishment",
]

TEXT_SEARCH_RADIUS_M = 2000
TEXT_SEARCH_MAX_RESULTS = 10

# Wait after an explicit rate-limit signal before the next request
RATE_LIMIT_COOLDOWN_S = 2.0


def _cooldown(step: str, cooldown_s: float) -> None:
    logger.warning("Rate limited during %s, waiting %.1fs...", step, cooldown_s)
    time.sleep(cooldown_s)


def search_nearby_best(
    client: Any,
    latitude: float,
    longitude: float,
    name: str,
    config: MatchConfig,
    radii_m: tuple[int, ...] = SEARCH_RADII_M,
    cooldown_s: float = RATE_LIMIT_COOLDOWN_S,
) -> MatchResult | None:
    """
    Run the expanding-radius Nearby Search and return the best accepted match.

    Stops early once the best match lies within the very-close tier.
    """
    best: MatchResult | None = None

    for radius in radii_m:
        try:
            places = client.search_nearby(
                latitude,
                longitude,
                radius,
                INCLUDED_TYPES,
                MAX_RESULT_COUNT,
            )
        except RateLimitError:
            _cooldown(f"nearby search ({radius}m)", cooldown_s)
            continue
        except PlacesRequestError as e:
            logger.warning("Nearby search (%dm) failed for '%s': %s", radius, name, e)
            continue

        best = best_of(latitude, longitude, name, places, config, current=best)
        logger.debug(
            "Nearby %dm for '%s': %d places, best=%s",
            radius, name, len(places), best.to_dict() if best else None,
        )

        if best is not None and best.distance_km <= config.very_close_km:
            break

    return best


def search_text_best(
    client: Any,
    latitude: float,
    longitude: float,
    name: str,
    config: MatchConfig,
    current: MatchResult | None = None,
    cooldown_s: float = RATE_LIMIT_COOLDOWN_S,
) -> MatchResult | None:
    """Free-text fallback under the same acceptance policy."""
    try:
        places = client.search_text(
            name,
            latitude,
            longitude,
            TEXT_SEARCH_RADIUS_M,
            TEXT_SEARCH_MAX_RESULTS,
        )
    except RateLimitError:
        _cooldown("text search", cooldown_s)
        return current
    except PlacesRequestError as e:
        logger.warning("Text search failed for '%s': %s", name, e)
        return current

    return best_of(latitude, longitude, name, places, config, current=current)


def fetch_details(
    client: Any,
    candidate: Candidate,
    cooldown_s: float = RATE_LIMIT_COOLDOWN_S,
) -> Candidate:
    """
    Expand a search-result candidate with its full place details.

    On any recoverable failure the candidate is returned unchanged; it is
    still usable for adjudication, just without the expanded photo list.
    """
    try:
        details = client.get_details(candidate.place_id)
    except RateLimitError:
        _cooldown(f"details for {candidate.place_id}", cooldown_s)
        return candidate
    except PlacesRequestError as e:
        logger.warning("Error fetching place details for %s: %s", candidate.place_id, e)
        return candidate

    if details is None:
        return candidate
    return merge_details(candidate, details)


def find_best_match(
    client: Any,
    latitude: float,
    longitude: float,
    name: str,
    config: MatchConfig | None = None,
    cooldown_s: float = RATE_LIMIT_COOLDOWN_S,
) -> MatchResult | None:
    """
    Find the single best Places candidate for a local POI, or None.

    The returned MatchResult carries a candidate already expanded with its
    full details.
    """
    if config is None:
        config = MatchConfig()

    best = search_nearby_best(client, latitude, longitude, name, config, cooldown_s=cooldown_s)

    if best is None:
        logger.debug("No nearby match for '%s', trying text search", name)
        best = search_text_best(client, latitude, longitude, name, config, cooldown_s=cooldown_s)

    if best is not None:
        best.candidate = fetch_details(client, best.candidate, cooldown_s=cooldown_s)

    return best
