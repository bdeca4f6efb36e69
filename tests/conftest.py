"""Shared fixtures for the places_verification test suite."""

import pytest


@pytest.fixture()
def raw_places() -> list[dict]:
    """Input entries in the Mongo-export shape the curated file uses."""
    return [
        {
            "_id": {"$oid": "64a1f0c2e4b0a1b2c3d4e5f1"},
            "sql_id": 101,
            "title": "Nikolassee Beach",
            "lat": "52.4300",
            "lng": "13.2000",
            "state": "Active",
            "deleted": False,
            "images": ["https://cdn.example.com/a.jpg", "uploads/local.jpg"],
            "features": ["beach", "lake"],
            "rating": 4.1,
            "description": "Lake beach",
            "country": "unknown",
            "createdAt": {"$date": "2021-05-01T10:00:00Z"},
        },
        {
            "_id": {"$oid": "64a1f0c2e4b0a1b2c3d4e5f2"},
            "title": "Deleted Camp",
            "lat": "48.1000",
            "lng": "11.5000",
            "deleted": True,
        },
        {
            "_id": {"$oid": "64a1f0c2e4b0a1b2c3d4e5f3"},
            "title": "No Coordinates Spa",
            "lat": "",
            "lng": "abc",
        },
        {
            "_id": {"$oid": "64a1f0c2e4b0a1b2c3d4e5f4"},
            "title": "Inactive Sauna",
            "lat": "50.0",
            "lng": "8.0",
            "state": "Inactive",
        },
        {
            "_id": {"$oid": "64a1f0c2e4b0a1b2c3d4e5f5"},
            "title": "Teufelssee",
            "lat": "52.4900",
            "lng": "13.2500",
        },
    ]
