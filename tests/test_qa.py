"""
Tests for coordinate and bounds QA checks.
"""

import math

import pytest

from safety_trends.geometry import BoundingBox
from safety_trends.qa import BoundsError, check_bounds_plausible, is_valid_coordinate


class TestIsValidCoordinate:
    """Tests for is_valid_coordinate."""

    @pytest.mark.parametrize("lat,lon", [
        (39.95, -75.16), (0, 0), (90, 180), (-90, -180), ("39.95", "-75.16"),
    ])
    def test_valid(self, lat, lon):
        assert is_valid_coordinate(lat, lon)

    @pytest.mark.parametrize("lat,lon", [
        (None, 0.0), (0.0, None), (math.nan, 0.0), (0.0, math.inf),
        (90.1, 0.0), (0.0, -180.5), ("north", 0.0), (True, 0.0),
    ])
    def test_invalid(self, lat, lon):
        assert not is_valid_coordinate(lat, lon)


class TestCheckBoundsPlausible:
    """Tests for check_bounds_plausible."""

    def test_valid(self):
        assert check_bounds_plausible(BoundingBox(0.0, 1.0, 0.0, 1.0))

    def test_none_passes(self):
        assert check_bounds_plausible(None)

    def test_inverted(self):
        with pytest.raises(BoundsError, match="Latitude inverted"):
            check_bounds_plausible(BoundingBox(2.0, 1.0, 0.0, 1.0), context="fishtown")

    def test_non_finite(self):
        with pytest.raises(BoundsError, match="Non-finite"):
            check_bounds_plausible(BoundingBox(0.0, math.nan, 0.0, 1.0))

    def test_context_in_message(self):
        with pytest.raises(BoundsError, match="fishtown"):
            check_bounds_plausible(BoundingBox(0.0, 1.0, 3.0, 1.0), context="fishtown")
