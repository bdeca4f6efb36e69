"""
Places Verification: Geospatial Distance

Great-circle distance between POI coordinates using the Haversine formula,
plus a bounding-box prefilter for finding points near a target.

No external geo-libraries required, pure math with stdlib.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, TypeVar


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EARTH_RADIUS_KM = 6371.0

T = TypeVar("T")


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 coordinate pair in decimal degrees."""
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        """Check that both components are finite and within world bounds."""
        return (
            math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
            and -90.0 <= self.latitude <= 90.0
            and -180.0 <= self.longitude <= 180.0
        )


# ---------------------------------------------------------------------------
# Core distance calculation
# ---------------------------------------------------------------------------


def haversine_km(coord_a: Coordinate, coord_b: Coordinate) -> float:
    """
    Compute the great-circle distance in kilometres between two WGS84 points
    using the Haversine formula.
    """
    lat1 = math.radians(coord_a.latitude)
    lat2 = math.radians(coord_b.latitude)
    dlat = math.radians(coord_b.latitude - coord_a.latitude)
    dlon = math.radians(coord_b.longitude - coord_a.longitude)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_km(lat_a: float, lon_a: float, lat_b: float, lon_b: float) -> float:
    """Haversine distance between two raw (lat, lon) pairs."""
    return haversine_km(Coordinate(lat_a, lon_a), Coordinate(lat_b, lon_b))


# ---------------------------------------------------------------------------
# Candidate filtering
# ---------------------------------------------------------------------------


def bounding_box_filter(
    target: Coordinate,
    radius_km: float,
) -> tuple[float, float, float, float]:
    """
    Return a lat/lon bounding box that encloses a circle of the given radius
    around the target coordinate.

    Returns (min_lat, max_lat, min_lon, max_lon) in degrees.
    """
    lat_delta = radius_km / EARTH_RADIUS_KM * (180.0 / math.pi)
    cos_lat = math.cos(math.radians(target.latitude))
    if cos_lat < 1e-9:
        # At the poles every longitude is in range
        lon_delta = 180.0
    else:
        lon_delta = min(180.0, lat_delta / cos_lat)

    return (
        target.latitude - lat_delta,
        target.latitude + lat_delta,
        target.longitude - lon_delta,
        target.longitude + lon_delta,
    )


def find_nearby(
    target: Coordinate,
    points: Iterable[tuple[Coordinate, T]],
    radius_km: float,
) -> list[tuple[float, T]]:
    """
    Return the payloads of all points strictly closer than ``radius_km``.

    Uses a bounding-box pre-filter then an exact Haversine check.  Results
    are ``(distance_km, payload)`` tuples sorted by distance ascending.
    """
    min_lat, max_lat, min_lon, max_lon = bounding_box_filter(target, radius_km)

    nearby = []
    for coord, payload in points:
        # Bounding-box pre-filter (skipped across the antimeridian)
        if not (min_lat <= coord.latitude <= max_lat):
            continue
        if min_lon >= -180.0 and max_lon <= 180.0:
            if not (min_lon <= coord.longitude <= max_lon):
                continue
        dist = haversine_km(target, coord)
        if dist < radius_km:
            nearby.append((dist, payload))

    nearby.sort(key=lambda item: item[0])
    return nearby
