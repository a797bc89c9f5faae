"""Great-circle distance on WGS-84 coordinates."""

from math import atan2, cos, radians, sin, sqrt

from ..state.schema import Coordinates

EARTH_RADIUS_METERS = 6_371_000


def distance_meters(a: Coordinates, b: Coordinates) -> float:
    """Return the haversine distance between two points in meters."""
    d_lat = radians(b.lat - a.lat)
    d_lng = radians(b.lng - a.lng)
    h = (
        sin(d_lat / 2) ** 2
        + cos(radians(a.lat)) * cos(radians(b.lat)) * sin(d_lng / 2) ** 2
    )
    h = min(1.0, h)  # Rounding can push antipodal pairs past 1
    return EARTH_RADIUS_METERS * 2 * atan2(sqrt(h), sqrt(1 - h))
