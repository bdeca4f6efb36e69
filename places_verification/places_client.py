"""
Places Verification: Google Places API (New) Client

Thin wrapper over the three Places endpoints the verifier needs:

    POST /v1/places:searchNearby   (radius-restricted proximity search)
    POST /v1/places:searchText     (free-text search biased to a point)
    GET  /v1/places/{id}           (full place details, all photos)

Each call is made once.  Failures are raised as typed exceptions so the
caller decides whether to skip, cool down, or abort:

    RateLimitError      HTTP 429 / RESOURCE_EXHAUSTED
    PlacesAuthError     HTTP 401 / 403 (bad key, API not enabled)
    PlacesRequestError  any other transport or HTTP failure

Dependencies:
    pip install requests
"""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from .records import Candidate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Google Places API (New) configuration
# ---------------------------------------------------------------------------

PLACES_API_BASE_URL = "https://places.googleapis.com/v1"

API_KEY_ENV = "GOOGLE_PLACES_API_KEY"

REQUEST_TIMEOUT_S = 30

# Fields requested from search endpoints. Details use "*" to get every photo.
SEARCH_FIELDS = [
    "id",
    "displayName",
    "formattedAddress",
    "location",
    "rating",
    "userRatingCount",
    "priceLevel",
    "photos",
    "types",
    "editorialSummary",
    "websiteUri",
    "nationalPhoneNumber",
]
SEARCH_FIELD_MASK = ",".join(f"places.{name}" for name in SEARCH_FIELDS)
DETAILS_FIELD_MASK = "*"

LANGUAGE_CODE = "en"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class PlacesAPIError(Exception):
    """Base class for Places API failures."""


class PlacesRequestError(PlacesAPIError):
    """Transient transport or HTTP failure; safe to skip."""


class RateLimitError(PlacesAPIError):
    """The API asked us to slow down."""


class PlacesAuthError(PlacesAPIError):
    """The API key was rejected.  Not recoverable within a run."""


def get_api_key() -> str:
    """Read the API key from the environment or raise PlacesAuthError."""
    api_key = os.environ.get(API_KEY_ENV)
    if not api_key:
        raise PlacesAuthError(
            f"Set {API_KEY_ENV} environment variable. "
            "Places API (New) must be enabled for the key."
        )
    return api_key


def photo_url(photo_name: str, api_key: str, max_width: int = 800) -> str:
    """Build the media URL for a Places photo resource name."""
    if not photo_name:
        return ""
    return f"{PLACES_API_BASE_URL}/{photo_name}/media?key={api_key}&maxWidthPx={max_width}"


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class PlacesClient:
    """Google Places API (New) client over a shared requests.Session."""

    def __init__(
        self,
        api_key: str,
        session: requests.Session | None = None,
        base_url: str = PLACES_API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_S,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self, field_mask: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": field_mask,
        }

    def _send(
        self,
        method: str,
        path: str,
        field_mask: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            resp = self.session.request(
                method,
                url,
                json=body,
                params=params,
                headers=self._headers(field_mask),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise PlacesRequestError(f"Timeout calling {path}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PlacesRequestError(f"Request error calling {path}: {e}") from e

        if resp.status_code == 200:
            try:
                return resp.json()
            except ValueError as e:
                raise PlacesRequestError(f"Invalid JSON from {path}: {e}") from e

        detail = resp.text[:300]
        if resp.status_code == 429 or "RESOURCE_EXHAUSTED" in detail:
            raise RateLimitError(f"Rate limited (429) on {path}")
        if resp.status_code in (401, 403):
            raise PlacesAuthError(
                f"API key error ({resp.status_code}). Check that Places API (New) "
                f"is enabled and the key is valid. Response: {detail}"
            )
        raise PlacesRequestError(f"HTTP {resp.status_code} on {path}: {detail}")

    @staticmethod
    def _parse_places(data: dict[str, Any]) -> list[Candidate]:
        candidates = []
        for place in data.get("places") or []:
            candidate = Candidate.from_api(place)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def search_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_m: float,
        included_types: list[str],
        max_results: int = 20,
    ) -> list[Candidate]:
        """Nearby Search restricted to a circle around the point."""
        body = {
            "includedTypes": list(included_types),
            "maxResultCount": max_results,
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": latitude, "longitude": longitude},
                    "radius": float(radius_m),
                }
            },
            "languageCode": LANGUAGE_CODE,
        }
        data = self._send("POST", "places:searchNearby", SEARCH_FIELD_MASK, body=body)
        return self._parse_places(data)

    def search_text(
        self,
        query: str,
        latitude: float,
        longitude: float,
        radius_m: float,
        max_results: int = 10,
    ) -> list[Candidate]:
        """Text Search biased (not restricted) to a circle around the point."""
        body = {
            "textQuery": query,
            "maxResultCount": max_results,
            "locationBias": {
                "circle": {
                    "center": {"latitude": latitude, "longitude": longitude},
                    "radius": float(radius_m),
                }
            },
            "languageCode": LANGUAGE_CODE,
        }
        data = self._send("POST", "places:searchText", SEARCH_FIELD_MASK, body=body)
        return self._parse_places(data)

    def get_details(self, place_id: str) -> Candidate | None:
        """Full details for one place, or None if the response has no id."""
        data = self._send("GET", f"places/{place_id}", DETAILS_FIELD_MASK)
        return Candidate.from_api(data)

    def close(self) -> None:
        self.session.close()
