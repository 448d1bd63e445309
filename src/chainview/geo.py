"""Spherical geodesy helpers."""

from __future__ import annotations

import math
from typing import NamedTuple

# Equatorial radius used by the web-mercator map substrate.
EARTH_RADIUS_M = 6_378_137.0


class GeoPoint(NamedTuple):
    """Latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lng)


def destination(origin: GeoPoint, azimuth_deg: float, distance_m: float) -> GeoPoint:
    """Return the point reached from *origin* along *azimuth_deg* after *distance_m*.

    Azimuth is measured clockwise from true north. The result longitude is
    wrapped to ``[-180, 180)``.
    """
    lat1 = math.radians(origin.lat)
    lng1 = math.radians(origin.lng)
    bearing = math.radians(azimuth_deg % 360.0)
    angular = distance_m / EARTH_RADIUS_M

    sin_lat2 = math.sin(lat1) * math.cos(angular) + math.cos(lat1) * math.sin(angular) * math.cos(bearing)
    lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
    lng2 = lng1 + math.atan2(
        math.sin(bearing) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )

    lng_deg = (math.degrees(lng2) + 540.0) % 360.0 - 180.0
    return GeoPoint(math.degrees(lat2), lng_deg)


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in meters."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))
