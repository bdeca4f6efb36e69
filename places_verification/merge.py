"""
Places Verification: Merge Engine

Combines a local POI with its accepted Places candidate into a
VerifiedRecord.  Field precedence:

    rating       Google rating, only if higher than the local one
    description  editorial summary, only if local is empty or short
    country      last segment of the formatted address, only if unknown
    images       Google photos first (max 10, 800px), then local http(s)
                 images not already present
"""

from __future__ import annotations

from dataclasses import replace

from .algorithms.match_policy import MatchConfig, MatchResult, is_acceptable
from .places_client import photo_url
from .records import (
    STATUS_ERROR,
    STATUS_NOT_FOUND,
    STATUS_VERIFIED,
    LocalRecord,
    VerifiedRecord,
)

MAX_GOOGLE_PHOTOS = 10
PHOTO_MAX_WIDTH_PX = 800
MIN_DESCRIPTION_LENGTH = 50


def _describe(match: MatchResult) -> str:
    return (
        f"similarity: {match.name_similarity * 100:.1f}%, "
        f"distance: {match.distance_km * 1000:.0f}m"
    )


def local_web_images(images: tuple[str, ...] | list[str]) -> list[str]:
    """Keep only http(s) image URLs, in order."""
    return [img for img in images if isinstance(img, str) and img.startswith("http")]


def merge_images(google_images: list[str], local_images: tuple[str, ...] | list[str]) -> list[str]:
    """
    Google photos first, then local web images, exact duplicates removed.

    With no Google photos the local web images are returned as-is.
    """
    valid_local = local_web_images(local_images)
    if not google_images:
        return valid_local

    merged: list[str] = []
    seen: set[str] = set()
    for url in [*google_images, *valid_local]:
        if url in seen:
            continue
        seen.add(url)
        merged.append(url)
    return merged


def country_from_address(formatted_address: str | None) -> str | None:
    """Last comma-separated segment of a formatted address."""
    if not formatted_address:
        return None
    last = formatted_address.split(",")[-1].strip()
    return last or None


def merge_place_data(
    index: int,
    local: LocalRecord,
    match: MatchResult | None,
    api_key: str,
    config: MatchConfig | None = None,
) -> VerifiedRecord:
    """
    Adjudicate the final match and build the VerifiedRecord.

    The match is re-validated against the tiers; one that fails every tier
    is demoted to not_found even though a candidate was returned.
    """
    if match is None:
        return VerifiedRecord(
            index=index,
            place=local,
            status=STATUS_NOT_FOUND,
            note="Not found in Google Places API",
        )

    if not is_acceptable(match, config):
        return VerifiedRecord(
            index=index,
            place=local,
            status=STATUS_NOT_FOUND,
            note=f"No good match found ({_describe(match)})",
        )

    place = match.candidate
    google_images = [
        photo_url(name, api_key, PHOTO_MAX_WIDTH_PX)
        for name in place.photos[:MAX_GOOGLE_PHOTOS]
    ]

    updates: dict = {"images": tuple(merge_images(google_images, local.images))}

    if place.rating is not None and place.rating > (local.rating or 0):
        updates["rating"] = place.rating

    if place.editorial_summary and len(local.description or "") < MIN_DESCRIPTION_LENGTH:
        updates["description"] = place.editorial_summary

    if not local.country or local.country.lower() == "unknown":
        country = country_from_address(place.formatted_address)
        if country:
            updates["country"] = country

    return VerifiedRecord(
        index=index,
        place=replace(local, **updates),
        status=STATUS_VERIFIED,
        note=(
            f"Matched with {match.name_similarity * 100:.1f}% similarity, "
            f"{match.distance_km * 1000:.0f}m away"
        ),
        google_place_id=place.place_id,
        google_rating=place.rating,
        google_user_rating_count=place.user_rating_count,
        google_formatted_address=place.formatted_address,
        google_website=place.website,
        google_phone=place.phone,
        google_images=google_images,
    )


def error_record(index: int, local: LocalRecord, exc: BaseException) -> VerifiedRecord:
    """VerifiedRecord for a record whose processing raised."""
    return VerifiedRecord(
        index=index,
        place=local,
        status=STATUS_ERROR,
        note=f"Error: {exc}",
    )
