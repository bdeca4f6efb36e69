"""Tests for places_verification: post-run deduplication."""

from places_verification.algorithms.geo_proximity import Coordinate
from places_verification.cleaner import clean_verified_records, grid_key
from places_verification.records import STATUS_NOT_FOUND, STATUS_VERIFIED, VerifiedRecord

from .helpers import BASE_LAT, BASE_LNG, make_local, north_of


def _record(record_id, status, meters_north=0.0, index=0, **place_fields):
    place = make_local(
        record_id=record_id,
        name=place_fields.pop("name", f"Place {record_id}"),
        latitude=north_of(BASE_LAT, meters_north),
        longitude=BASE_LNG,
        **place_fields,
    )
    return VerifiedRecord(index=index, place=place, status=status, note="")


def _ids(records):
    return [r.place.id for r in records]


# ---- grid_key ---------------------------------------------------------------


class TestGridKey:
    def test_rounds_to_four_decimals(self):
        assert grid_key(Coordinate(52.123456, 13.987654)) == (52.1235, 13.9877)


# ---- clean_verified_records -------------------------------------------------


class TestCleanVerifiedRecords:
    def test_duplicate_ids_first_wins(self):
        first = _record("a", STATUS_VERIFIED, name="First")
        second = _record("a", STATUS_VERIFIED, meters_north=5000, name="Second")
        cleaned = clean_verified_records([first, second])
        assert len(cleaned) == 1
        assert cleaned[0].place.name == "First"

    def test_records_without_id_not_deduplicated(self):
        """Only a shared non-empty id counts as a duplicate."""
        a = VerifiedRecord(
            index=0, place=make_local(record_id="", name="A", latitude=52.0, longitude=13.0),
            status=STATUS_NOT_FOUND, note="",
        )
        b = VerifiedRecord(
            index=1, place=make_local(record_id="", name="B", latitude=48.0, longitude=11.0),
            status=STATUS_NOT_FOUND, note="",
        )
        cleaned = clean_verified_records([a, b])
        assert [r.place.name for r in cleaned] == ["A", "B"]

    def test_unverified_near_verified_dropped(self):
        verified = _record("v", STATUS_VERIFIED)
        unverified = _record("u", STATUS_NOT_FOUND, meters_north=30)
        assert _ids(clean_verified_records([verified, unverified])) == ["v"]

    def test_order_independent(self):
        verified = _record("v", STATUS_VERIFIED)
        unverified = _record("u", STATUS_NOT_FOUND, meters_north=30)
        assert _ids(clean_verified_records([unverified, verified])) == ["v"]

    def test_unverified_far_from_verified_kept(self):
        verified = _record("v", STATUS_VERIFIED)
        unverified = _record("u", STATUS_NOT_FOUND, meters_north=200)
        assert _ids(clean_verified_records([verified, unverified])) == ["v", "u"]

    def test_two_unverified_close_both_kept(self):
        a = _record("a", STATUS_NOT_FOUND)
        b = _record("b", STATUS_NOT_FOUND, meters_north=30)
        assert _ids(clean_verified_records([a, b])) == ["a", "b"]

    def test_two_verified_close_both_kept(self):
        a = _record("a", STATUS_VERIFIED)
        b = _record("b", STATUS_VERIFIED, meters_north=30)
        assert _ids(clean_verified_records([a, b])) == ["a", "b"]

    def test_unverified_without_name_dropped(self):
        nameless = _record("n", STATUS_NOT_FOUND, name="")
        assert clean_verified_records([nameless]) == []

    def test_unverified_deleted_dropped(self):
        deleted = _record("d", STATUS_NOT_FOUND, deleted=True)
        assert clean_verified_records([deleted]) == []

    def test_unverified_without_coordinates_dropped(self):
        record = VerifiedRecord(
            index=0,
            place=make_local(record_id="x", latitude=None, longitude=None),
            status=STATUS_NOT_FOUND,
            note="",
        )
        assert clean_verified_records([record]) == []

    def test_preserves_relative_order(self):
        records = [
            _record("c", STATUS_NOT_FOUND, meters_north=3000),
            _record("a", STATUS_VERIFIED, meters_north=0),
            _record("b", STATUS_NOT_FOUND, meters_north=6000),
        ]
        assert _ids(clean_verified_records(records)) == ["c", "a", "b"]

    def test_idempotent(self):
        records = [
            _record("v", STATUS_VERIFIED),
            _record("u", STATUS_NOT_FOUND, meters_north=30),
            _record("v", STATUS_VERIFIED),
            _record("w", STATUS_NOT_FOUND, meters_north=1000),
            _record("x", STATUS_NOT_FOUND, meters_north=1020),
        ]
        once = clean_verified_records(records)
        assert clean_verified_records(once) == once

    def test_input_not_modified(self):
        records = [_record("v", STATUS_VERIFIED), _record("u", STATUS_NOT_FOUND, meters_north=30)]
        clean_verified_records(records)
        assert len(records) == 2

    def test_custom_radius(self):
        verified = _record("v", STATUS_VERIFIED)
        unverified = _record("u", STATUS_NOT_FOUND, meters_north=150)
        assert _ids(clean_verified_records([verified, unverified], close_km=0.2)) == ["v"]
