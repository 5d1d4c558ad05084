"""Test configuration and fixtures for the file handler tests."""

import sys
from pathlib import Path

import pytest

# Ensure repo root (filehandler + shared) is on path when running from tests/
_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))


@pytest.fixture
def feature_collection():
    return {
        "type": "FeatureCollection",
        "crs": {"type": "name", "properties": {"name": "urn:ogc:def:crs:OGC:1.3:CRS84"}},
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [-122.4, 37.8]},
                "properties": {"name": "a", "value": 1.5},
            },
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [-122.5, 37.7]},
                "properties": {"name": "b", "value": -2.25, "extra": None},
            },
        ],
    }

@pytest.fixture
def kepler_map():
    return {
        "datasets": [
            {
                "version": "v1",
                "data": {
                    "id": "trips",
                    "label": "trips.csv",
                    "allData": [[1, "x"], [2, "y"]],
                    "fields": [{"name": "n", "type": "integer"}, {"name": "s", "type": "string"}],
                },
            }
        ],
        "config": {
            "version": "v1",
            "config": {
                "visState": {"layers": []},
                "mapState": {"latitude": 37.75, "longitude": -122.45, "zoom": 9},
            },
        },
        "info": {"app": "kepler.gl", "created_at": "Mon Oct 12 2020"},
    }

@pytest.fixture
def row_objects():
    return [
        {"id": 1, "city": "Zürich", "lat": 47.37, "ok": True},
        {"id": 2, "city": "東京", "lat": 35.68, "ok": False},
        {"id": 3, "city": "Paris", "lat": 48.85, "ok": None},
    ]
