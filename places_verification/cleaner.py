"""
Places Verification: Post-run Deduplication

Collapses the verified output once a run has finished:

    1. Exact duplicate ids are dropped (first occurrence wins).
    2. Verified records are indexed on a 4-decimal coordinate grid (~11 m).
       An unverified record lying within ``close_km`` of any verified grid
       point is dropped; the verified one is the better copy of that place.
    3. Survivors are verified records, plus unverified ones that still
       have coordinates, a name, and are not deleted.

Two unverified records close to each other are both kept; nothing decides
between them.  Survivor order is the original relative order, and a second
pass over the output removes nothing.
"""

from __future__ import annotations

import logging

from .algorithms.geo_proximity import Coordinate, find_nearby
from .records import VerifiedRecord

logger = logging.getLogger(__name__)

DEFAULT_CLOSE_KM = 0.1
GRID_DECIMALS = 4


def grid_key(coord: Coordinate) -> tuple[float, float]:
    return (round(coord.latitude, GRID_DECIMALS), round(coord.longitude, GRID_DECIMALS))


def _survives(record: VerifiedRecord) -> bool:
    if record.verified:
        return True
    place = record.place
    return place.coordinate is not None and bool(place.name) and not place.deleted


def clean_verified_records(
    records: list[VerifiedRecord],
    close_km: float = DEFAULT_CLOSE_KM,
) -> list[VerifiedRecord]:
    """Return the cleaned record list; the input list is not modified."""
    logger.info("Cleaning verified places...")

    # Pass 1: unique ids
    unique: list[VerifiedRecord] = []
    seen_ids: set[str] = set()
    for record in records:
        record_id = record.place.id
        if record_id and record_id in seen_ids:
            continue
        seen_ids.add(record_id)
        unique.append(record)

    # Pass 2: grid of verified coordinates
    verified_grid: dict[tuple[float, float], str] = {}
    for record in unique:
        coord = record.place.coordinate
        if record.verified and coord is not None:
            verified_grid.setdefault(grid_key(coord), record.place.id)

    grid_points = [
        (Coordinate(lat, lng), place_id)
        for (lat, lng), place_id in verified_grid.items()
    ]

    # Pass 3: drop unverified near-duplicates of verified places, then filter
    cleaned: list[VerifiedRecord] = []
    near_duplicates = 0
    for record in unique:
        coord = record.place.coordinate
        if not record.verified and coord is not None and grid_points:
            nearby = find_nearby(coord, grid_points, close_km)
            if nearby:
                near_duplicates += 1
                logger.debug(
                    "Dropping unverified '%s': %.0fm from verified %s",
                    record.place.name, nearby[0][0] * 1000, nearby[0][1],
                )
                continue
        if _survives(record):
            cleaned.append(record)

    logger.info(
        "Cleaned: %d -> %d places (%d duplicate ids, %d near-duplicates)",
        len(records), len(cleaned), len(records) - len(unique), near_duplicates,
    )
    return cleaned
