"""Shared fixtures for the safety trends test suite."""

import pytest

from safety_trends.config import TrendConfig
from safety_trends.schemas import PointRecord, boundaries_from_geojson
from safety_trends.trends import SafetyTrendEngine


# Unit square in (lat, lon): (0,0), (0,1), (1,1), (1,0)
SQUARE_RING = [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0], [0.0, 0.0]]


def make_points(n, year, category="Aggravated Assault", lat=0.5, lon=0.5):
    """n points at (lat, lon) timestamped mid-year."""
    return [
        PointRecord(
            lat=lat,
            lon=lon + i * 0.001,
            timestamp=f"{year}-06-15 12:00:00",
            category=category,
        )
        for i in range(n)
    ]


@pytest.fixture
def config():
    """Default engine parameters, independent of configs/params.yml."""
    return TrendConfig()


@pytest.fixture
def engine(config):
    return SafetyTrendEngine(config=config)


@pytest.fixture
def square_collection():
    """FeatureCollection with one square neighborhood."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"MAPNAME": "Square Park"},
                "geometry": {"type": "Polygon", "coordinates": [SQUARE_RING]},
            }
        ],
    }


@pytest.fixture
def square_boundaries(square_collection):
    return boundaries_from_geojson(square_collection)


@pytest.fixture
def two_neighborhoods():
    """A square, plus a degenerate two-vertex boundary."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"name": "Square Park"},
                "geometry": {"type": "Polygon", "coordinates": [SQUARE_RING]},
            },
            {
                "type": "Feature",
                "properties": {"name": "Sliver"},
                "geometry": {"type": "Polygon", "coordinates": [[[5.0, 5.0], [6.0, 6.0]]]},
            },
        ],
    }


@pytest.fixture
def point_factory():
    """Factory for mid-year incident points near the square's center."""
    return make_points
