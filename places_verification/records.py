"""
Places Verification: Record Models

Typed records used throughout the pipeline:

    LocalRecord:     a curated POI from the input file (immutable)
    Candidate:       a place returned by the Places API
    VerifiedRecord:  the unit of output and of resumability

Input files come from a Mongo export, so fields arrive in loose shapes
(``{"$oid": ...}`` wrappers, string coordinates, alternative key names).
``sanitize_value`` and ``LocalRecord.from_dict`` turn that into the strict
shape; nothing downstream touches raw dicts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from .algorithms.geo_proximity import Coordinate

STATUS_VERIFIED = "verified"
STATUS_NOT_FOUND = "not_found"
STATUS_ERROR = "error"

VALID_STATUSES = {STATUS_VERIFIED, STATUS_NOT_FOUND, STATUS_ERROR}

# Key aliases accepted on input, first match wins.  The first alias is also
# the key written on output when a record did not come from a dict.
_ALIASES = {
    "id": ("_id", "id"),
    "name": ("title", "name"),
    "latitude": ("lat", "latitude"),
    "longitude": ("lng", "lon", "longitude"),
    "features": ("features", "tags"),
}

_PLAIN_KEYS = ("country", "rating", "description", "state", "deleted", "images")

# Verification metadata keys, as read by the downstream upload job
KEY_VERIFIED = "verified"
KEY_STATUS = "verificationStatus"
KEY_DATE = "verificationDate"
KEY_NOTE = "verificationNote"
KEY_INDEX = "verificationIndex"

_GOOGLE_KEYS = {
    "google_place_id": "googlePlaceId",
    "google_rating": "googleRating",
    "google_user_rating_count": "googleUserRatingCount",
    "google_formatted_address": "googleFormattedAddress",
    "google_website": "googleWebsite",
    "google_phone": "googlePhone",
}
KEY_GOOGLE_IMAGES = "googleImages"

_META_KEYS = {
    KEY_VERIFIED, KEY_STATUS, KEY_DATE, KEY_NOTE, KEY_INDEX, KEY_GOOGLE_IMAGES,
    *_GOOGLE_KEYS.values(),
}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Sanitize
# ---------------------------------------------------------------------------


def sanitize_value(obj: Any) -> Any:
    """
    Recursively unwrap Mongo extended-JSON wrappers.

    ``{"$oid": "abc"}`` becomes ``"abc"`` and ``{"$date": ...}`` becomes an
    ISO-8601 string.  Epoch-millisecond dates are converted to UTC.
    """
    if isinstance(obj, list):
        return [sanitize_value(item) for item in obj]
    if isinstance(obj, dict):
        if "$oid" in obj:
            return str(obj["$oid"])
        if "$date" in obj:
            value = obj["$date"]
            if isinstance(value, (int, float)):
                return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).isoformat()
            if isinstance(value, dict) and "$numberLong" in value:
                millis = int(value["$numberLong"])
                return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc).isoformat()
            return str(value)
        return {key: sanitize_value(value) for key, value in obj.items()}
    return obj


def _pick(raw: dict[str, Any], keys: tuple[str, ...]) -> tuple[str, Any]:
    """Return ``(key, value)`` for the first alias present, else ``(keys[0], None)``."""
    for key in keys:
        if raw.get(key) is not None:
            return key, raw[key]
    return keys[0], None


def _to_float(value: Any) -> float | None:
    """Parse a coordinate or rating; unparseable and non-finite values → None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def _to_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


# ---------------------------------------------------------------------------
# LocalRecord
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocalRecord:
    """
    A curated point of interest as loaded from the input file.

    ``source_keys`` remembers which alias each field was read from and
    ``id_is_oid`` whether the id came wrapped as ``{"$oid": ...}``, so that
    ``to_dict`` writes the record back in the input's own shape.
    """

    id: str
    name: str
    latitude: float | None
    longitude: float | None
    country: str = ""
    features: tuple[str, ...] = ()
    rating: float | None = None
    description: str = ""
    state: str = ""
    deleted: bool = False
    images: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False)
    source_keys: dict[str, str] = field(default_factory=dict, compare=False)
    id_is_oid: bool = field(default=False, compare=False)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "LocalRecord":
        """Normalise a loosely-typed input entry into a LocalRecord."""
        clean = sanitize_value(raw)

        source_keys: dict[str, str] = {}
        values: dict[str, Any] = {}
        for name, aliases in _ALIASES.items():
            source_keys[name], values[name] = _pick(clean, aliases)

        raw_id = raw.get(source_keys["id"])
        consumed = {*source_keys.values(), *_PLAIN_KEYS}

        return cls(
            id=_to_str(values["id"]),
            name=_to_str(values["name"]).strip(),
            latitude=_to_float(values["latitude"]),
            longitude=_to_float(values["longitude"]),
            country=_to_str(clean.get("country")).strip(),
            features=tuple(_to_str_list(values["features"])),
            rating=_to_float(clean.get("rating")),
            description=_to_str(clean.get("description")),
            state=_to_str(clean.get("state")).strip(),
            deleted=_to_bool(clean.get("deleted")),
            images=tuple(_to_str_list(clean.get("images"))),
            extra={k: v for k, v in clean.items() if k not in consumed},
            source_keys=source_keys,
            id_is_oid=isinstance(raw_id, dict) and "$oid" in raw_id,
        )

    @property
    def coordinate(self) -> Coordinate | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(self.latitude, self.longitude)

    def _key(self, name: str) -> str:
        return self.source_keys.get(name, _ALIASES[name][0])

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.extra)
        out.update({
            self._key("id"): {"$oid": self.id} if self.id_is_oid else self.id,
            self._key("name"): self.name,
            self._key("latitude"): self.latitude,
            self._key("longitude"): self.longitude,
            "country": self.country,
            self._key("features"): list(self.features),
            "rating": self.rating,
            "description": self.description,
            "state": self.state,
            "deleted": self.deleted,
            "images": list(self.images),
        })
        return out


def is_valid_input(record: LocalRecord) -> bool:
    """
    Decide whether a record enters the valid-input set.

    Requires an id, a name, usable coordinates, not deleted, and an active
    (or absent) state.  Everything else is counted as skipped-by-filter.
    """
    if not record.id or not record.name or record.deleted:
        return False
    coord = record.coordinate
    if coord is None or not coord.is_valid():
        return False
    return not record.state or record.state.lower() == "active"


# ---------------------------------------------------------------------------
# Candidate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Candidate:
    """A place returned by the Places API (New)."""

    place_id: str
    name: str
    latitude: float | None
    longitude: float | None
    rating: float | None = None
    user_rating_count: int | None = None
    formatted_address: str | None = None
    types: tuple[str, ...] = ()
    editorial_summary: str | None = None
    photos: tuple[str, ...] = ()
    phone: str | None = None
    website: str | None = None

    @classmethod
    def from_api(cls, place: dict[str, Any]) -> "Candidate | None":
        """
        Convert a single Places API (New) place object.

        Returns None when the place has no id.  Any other field may be
        missing; the API returns partial objects depending on the field mask.
        """
        place_id = place.get("id")
        if not place_id:
            return None

        location = place.get("location") or {}
        display_name = place.get("displayName") or {}
        summary = place.get("editorialSummary") or {}
        photos = [
            p["name"] for p in place.get("photos") or []
            if isinstance(p, dict) and p.get("name")
        ]
        count = place.get("userRatingCount")

        return cls(
            place_id=str(place_id),
            name=display_name.get("text", ""),
            latitude=_to_float(location.get("latitude")),
            longitude=_to_float(location.get("longitude")),
            rating=_to_float(place.get("rating")),
            user_rating_count=int(count) if count is not None else None,
            formatted_address=place.get("formattedAddress"),
            types=tuple(place.get("types") or ()),
            editorial_summary=summary.get("text"),
            photos=tuple(photos),
            phone=place.get("nationalPhoneNumber") or place.get("internationalPhoneNumber"),
            website=place.get("websiteUri"),
        )

    @property
    def coordinate(self) -> Coordinate | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(self.latitude, self.longitude)


def merge_details(candidate: Candidate, details: Candidate) -> Candidate:
    """
    Overlay a full place-details response onto a search-result candidate.

    Detail fields win wherever they are present.  The detail photo list wins
    only when non-empty, otherwise the search result's photos are kept.
    """
    updates: dict[str, Any] = {}
    for name in (
        "name", "latitude", "longitude", "rating", "user_rating_count",
        "formatted_address", "editorial_summary", "phone", "website",
    ):
        value = getattr(details, name)
        if value not in (None, ""):
            updates[name] = value
    if details.types:
        updates["types"] = details.types
    updates["photos"] = details.photos or candidate.photos
    return replace(candidate, **updates)


# ---------------------------------------------------------------------------
# VerifiedRecord
# ---------------------------------------------------------------------------


@dataclass
class VerifiedRecord:
    """
    One processed LocalRecord plus its verification outcome.

    ``place`` holds the merged view of the local record (rating, description,
    country and images may have been replaced); the original input record is
    never modified.  ``index`` is the position in the valid-input list and
    is what checkpoints align on.
    """

    index: int
    place: LocalRecord
    status: str
    note: str
    verified_at: str = field(default_factory=utc_now)
    google_place_id: str | None = None
    google_rating: float | None = None
    google_user_rating_count: int | None = None
    google_formatted_address: str | None = None
    google_website: str | None = None
    google_phone: str | None = None
    google_images: list[str] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return self.status == STATUS_VERIFIED

    def to_dict(self) -> dict[str, Any]:
        out = self.place.to_dict()
        out.update({
            KEY_VERIFIED: self.verified,
            KEY_STATUS: self.status,
            KEY_DATE: self.verified_at,
            KEY_NOTE: self.note,
            KEY_INDEX: self.index,
        })
        if self.verified:
            for attr, key in _GOOGLE_KEYS.items():
                out[key] = getattr(self, attr)
            if self.google_images:
                out[KEY_GOOGLE_IMAGES] = list(self.google_images)
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "VerifiedRecord":
        """Rebuild a VerifiedRecord from a previously written output entry."""
        place = LocalRecord.from_dict({k: v for k, v in raw.items() if k not in _META_KEYS})

        status = raw.get(KEY_STATUS)
        if status not in VALID_STATUSES:
            status = STATUS_VERIFIED if raw.get(KEY_VERIFIED) else STATUS_NOT_FOUND

        index = raw.get(KEY_INDEX)
        google = {attr: raw.get(key) for attr, key in _GOOGLE_KEYS.items()}
        google["google_rating"] = _to_float(google["google_rating"])
        return cls(
            index=int(index) if index is not None else -1,
            place=place,
            status=status,
            note=raw.get(KEY_NOTE) or "",
            verified_at=raw.get(KEY_DATE) or utc_now(),
            google_images=_to_str_list(raw.get(KEY_GOOGLE_IMAGES)),
            **google,
        )
