"""Pytest fixtures for TravelGuard tests."""

import pytest

from travelguard.detector import TravelAnomalyDetector
from travelguard.geo.reader import StaticGeoResolver
from travelguard.history import SQLiteAccessHistory
from travelguard.models.events import GeoPoint

LOS_ANGELES = GeoPoint(34.0549, -118.2578, 200)
BALTIMORE = GeoPoint(39.2293, -76.6907, 10)
AUSTIN = GeoPoint(30.3773, -97.71, 5)

LOS_ANGELES_IP = "91.207.175.104"
BALTIMORE_IP = "206.81.252.7"
AUSTIN_IP = "24.242.71.20"


@pytest.fixture
def resolver():
    """Resolver knowing the three fixture addresses."""
    return StaticGeoResolver({
        LOS_ANGELES_IP: LOS_ANGELES,
        BALTIMORE_IP: BALTIMORE,
        AUSTIN_IP: AUSTIN,
    })


@pytest.fixture
def store():
    """In-memory access history."""
    with SQLiteAccessHistory(":memory:") as history:
        yield history


@pytest.fixture
def detector(resolver, store):
    return TravelAnomalyDetector(resolver, store)
