"""Test helpers: a scripted Places client and coordinate helpers."""

from __future__ import annotations

import math
from typing import Any, Callable

from places_verification.records import Candidate, LocalRecord

BASE_LAT = 52.4300
BASE_LNG = 13.2000


def north_of(latitude: float, meters: float) -> float:
    """Latitude of a point ``meters`` due north (exact along a meridian)."""
    return latitude + (meters / 1000.0) / 6371.0 * (180.0 / math.pi)


def name_with_similarity(base: str, changes: int) -> str:
    """``base`` with its first ``changes`` characters replaced by digits."""
    return "0" * changes + base[changes:]


def make_candidate(
    place_id: str,
    name: str,
    meters_north: float = 0.0,
    latitude: float = BASE_LAT,
    longitude: float = BASE_LNG,
    **kwargs: Any,
) -> Candidate:
    return Candidate(
        place_id=place_id,
        name=name,
        latitude=north_of(latitude, meters_north),
        longitude=longitude,
        **kwargs,
    )


def make_local(
    record_id: str = "loc-1",
    name: str = "Nikolassee Beach",
    latitude: float = BASE_LAT,
    longitude: float = BASE_LNG,
    **kwargs: Any,
) -> LocalRecord:
    return LocalRecord(
        id=record_id,
        name=name,
        latitude=latitude,
        longitude=longitude,
        **kwargs,
    )


Responder = Callable[..., Any]


class FakePlacesClient:
    """
    Scripted stand-in for PlacesClient.

    ``nearby`` maps a radius to a result list or an exception instance, or
    is a callable ``(lat, lng, radius) -> list``.  ``text`` is a list, an
    exception, or a callable ``(query, lat, lng) -> list``.  ``details``
    maps place ids to a Candidate or an exception.
    """

    def __init__(
        self,
        nearby: dict[int, Any] | Responder | None = None,
        text: Any = None,
        details: dict[str, Any] | None = None,
        api_key: str = "test-key",
    ):
        self.api_key = api_key
        self.nearby = nearby if nearby is not None else {}
        self.text = text if text is not None else []
        self.details = details if details is not None else {}
        self.calls: list[tuple] = []

    @staticmethod
    def _resolve(result: Any) -> Any:
        if isinstance(result, BaseException):
            raise result
        return list(result) if isinstance(result, (list, tuple)) else result

    def search_nearby(self, latitude, longitude, radius_m, included_types, max_results=20):
        self.calls.append(("nearby", latitude, longitude, radius_m))
        if callable(self.nearby):
            return self._resolve(self.nearby(latitude, longitude, radius_m))
        return self._resolve(self.nearby.get(radius_m, []))

    def search_text(self, query, latitude, longitude, radius_m, max_results=10):
        self.calls.append(("text", query, latitude, longitude))
        if callable(self.text):
            return self._resolve(self.text(query, latitude, longitude))
        return self._resolve(self.text)

    def get_details(self, place_id):
        self.calls.append(("details", place_id))
        return self._resolve(self.details.get(place_id))

    def call_kinds(self) -> list[str]:
        return [call[0] for call in self.calls]
