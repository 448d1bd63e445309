from __future__ import annotations

import math

import pytest

from chainview.geo import GeoPoint, destination, haversine_m


def test_destination_travels_requested_distance() -> None:
    origin = GeoPoint(51.5, -0.1)
    for azimuth in (0, 45, 90, 180, 270):
        target = destination(origin, azimuth, 2_500)
        assert haversine_m(origin, target) == pytest.approx(2_500, rel=1e-6)


def test_destination_north_increases_latitude_only() -> None:
    origin = GeoPoint(10.0, 20.0)
    target = destination(origin, 0, 1_000)
    assert target.lat > origin.lat
    assert target.lng == pytest.approx(origin.lng)


def test_destination_wraps_longitude() -> None:
    target = destination(GeoPoint(0.0, 179.999), 90, 10_000)
    assert -180.0 <= target.lng < -179.0


def test_is_finite() -> None:
    assert GeoPoint(1.0, 2.0).is_finite
    assert not GeoPoint(math.nan, 2.0).is_finite
    assert not GeoPoint(1.0, math.inf).is_finite
