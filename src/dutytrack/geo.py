"""Geospatial primitives.

This is the only haversine implementation in the package; ingestion, stop
detection, timeline distances and geofence checks all delegate here.
"""

import math
from typing import Iterable, Protocol

EARTH_RADIUS_METERS = 6_371_000.0


class HasCoordinates(Protocol):
    latitude: float
    longitude: float


def distance_meters(a: HasCoordinates, b: HasCoordinates) -> float:
    """Great-circle distance between two points in meters (haversine).

    NaN coordinates propagate to a NaN result; callers validate ranges first.
    """
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    delta_lat = math.radians(b.latitude - a.latitude)
    delta_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # rounding can push h a hair past 1.0 for antipodal points
    if h > 1.0:
        h = 1.0
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_METERS * c


def is_within_geofence(
    point: HasCoordinates,
    center: HasCoordinates,
    radius_meters: float,
    tolerance_meters: float = 0.0,
) -> bool:
    """True if point lies inside or on the boundary of the circle."""
    return distance_meters(point, center) <= radius_meters + tolerance_meters


def has_valid_coordinates(point: HasCoordinates) -> bool:
    """True if the point has finite, in-range coordinates."""
    lat = point.latitude
    lon = point.longitude
    if lat is None or lon is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def path_distance_meters(points: Iterable[HasCoordinates]) -> float:
    """Cumulative distance along consecutive points, skipping malformed ones."""
    total = 0.0
    previous = None
    for point in points:
        if not has_valid_coordinates(point):
            continue
        if previous is not None:
            total += distance_meters(previous, point)
        previous = point
    return total
