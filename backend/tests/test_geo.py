"""Tests for geodesic / temporal proximity helpers."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from incident_linker.utils.geo import (
    bounding_box,
    distance_km,
    is_valid_coordinate,
    spatial_proximity,
    time_delta_hours,
    time_proximity,
    to_utc_naive,
)

T0 = datetime(2024, 3, 1, 12, 0, 0)


class TestIsValidCoordinate:
    @pytest.mark.parametrize("lat,lon", [(1.25, 103.85), (-90, 180), (90, -180), (0, 1.5)])
    def test_valid(self, lat, lon):
        assert is_valid_coordinate(lat, lon)

    @pytest.mark.parametrize(
        "lat,lon",
        [
            (0, 0),
            (0.0, 0.0),
            (91, 10),
            (10, -181),
            (None, 10),
            ("1.0", "2.0"),
            (float("nan"), 1.0),
            (1.0, float("inf")),
            (True, 1.0),
        ],
    )
    def test_invalid(self, lat, lon):
        assert not is_valid_coordinate(lat, lon)


class TestDistance:
    def test_same_point_is_zero(self):
        assert distance_km(1.25, 103.85, 1.25, 103.85) == 0.0

    def test_one_degree_latitude(self):
        # R = 6371 km → one degree of arc ≈ 111.19 km
        assert distance_km(10.0, 20.0, 11.0, 20.0) == pytest.approx(111.19, abs=0.01)

    def test_symmetric(self):
        assert distance_km(4.0, 3.0, 4.01, 3.01) == pytest.approx(distance_km(4.01, 3.01, 4.0, 3.0))

    def test_invalid_point_is_infinite(self):
        assert math.isinf(distance_km(0, 0, 1.0, 1.0))
        assert math.isinf(distance_km(1.0, 1.0, None, 2.0))

    def test_across_antimeridian_is_short(self):
        assert distance_km(0.5, 179.9, 0.5, -179.9) < 25


class TestTime:
    def test_to_utc_naive_converts_aware(self):
        aware = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_utc_naive(aware) == T0

    def test_to_utc_naive_parses_iso_z(self):
        assert to_utc_naive("2024-03-01T12:00:00Z") == T0

    def test_to_utc_naive_unparsable(self):
        assert to_utc_naive("yesterday") is None
        assert to_utc_naive("") is None
        assert to_utc_naive(12345) is None

    def test_delta_hours(self):
        assert time_delta_hours(T0, T0 + timedelta(hours=6)) == pytest.approx(6.0)
        assert math.isinf(time_delta_hours(T0, None))

    def test_time_proximity_linear(self):
        assert time_proximity(T0, T0, 48) == 1.0
        assert time_proximity(T0, T0 + timedelta(hours=24), 48) == pytest.approx(0.5)
        assert time_proximity(T0, T0 - timedelta(hours=48), 48) == 0.0
        assert time_proximity(T0, T0 + timedelta(days=10), 48) == 0.0

    def test_time_proximity_mixed_awareness(self):
        aware = T0.replace(tzinfo=timezone.utc)
        assert time_proximity(T0, aware, 48) == 1.0

    def test_time_proximity_missing_is_zero(self):
        assert time_proximity(None, T0, 48) == 0.0

    def test_non_positive_window(self):
        assert time_proximity(T0, T0, 0) == 0.0


class TestSpatialProximity:
    def test_identical_point(self):
        assert spatial_proximity(1.25, 103.85, 1.25, 103.85, 50) == 1.0

    def test_outside_window_is_zero(self):
        assert spatial_proximity(1.0, 103.0, 3.0, 103.0, 50) == 0.0

    def test_invalid_is_zero(self):
        assert spatial_proximity(0, 0, 0, 0, 50) == 0.0

    def test_bounded(self):
        value = spatial_proximity(4.0, 3.0, 4.2, 3.1, 50)
        assert 0.0 <= value <= 1.0


class TestBoundingBox:
    def test_equator_box(self):
        box = bounding_box(0.5, 10.0, 50)
        assert box.min_lat == pytest.approx(0.5 - 50 / 111.32)
        assert box.max_lat == pytest.approx(0.5 + 50 / 111.32)
        assert box.min_lon < 10.0 < box.max_lon
        assert not box.crosses_antimeridian

    def test_longitude_span_widens_with_latitude(self):
        low = bounding_box(0.0, 10.0, 50)
        high = bounding_box(60.0, 10.0, 50)
        assert (high.max_lon - high.min_lon) > (low.max_lon - low.min_lon)

    def test_wraps_antimeridian(self):
        box = bounding_box(0.5, 179.9, 50)
        assert box.crosses_antimeridian
        assert box.min_lon == pytest.approx(179.9 - 50 / (111.32 * math.cos(math.radians(0.5))))
        assert -180.0 < box.max_lon < -179.0

    def test_pole_saturates_to_full_circle(self):
        box = bounding_box(90.0, 45.0, 50)
        assert (box.min_lon, box.max_lon) == (-180.0, 180.0)
        assert box.max_lat == 90.0
