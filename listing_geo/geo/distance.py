"""Great-circle and ellipsoidal distances between GeoPoints."""

from __future__ import annotations

import math

from pyproj import Geod

from listing_geo.common.constants import EARTH_RADIUS_KM
from listing_geo.common.models import GeoPoint

_WGS84 = Geod(ellps="WGS84")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Unrounded Haversine distance on a sphere of radius 6371 km."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Clamp float drift for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance(point_a: GeoPoint, point_b: GeoPoint) -> float:
    """Haversine distance in kilometres, rounded to 2 decimal places."""
    return round(
        haversine_km(point_a.latitude, point_a.longitude, point_b.latitude, point_b.longitude),
        2,
    )


def geodesic_km(point_a: GeoPoint, point_b: GeoPoint) -> float:
    """WGS84 ellipsoidal distance in kilometres, rounded to 2 decimal places."""
    _fwd, _back, metres = _WGS84.inv(point_a.longitude, point_a.latitude, point_b.longitude, point_b.latitude)
    return round(abs(metres) / 1000.0, 2)


METRICS = {
    "haversine": distance,
    "geodesic": geodesic_km,
}


def metric_by_name(name: str):
    try:
        return METRICS[name]
    except KeyError as exc:
        raise ValueError(f"Unknown distance metric: {name}") from exc


def format_distance(distance_km: float | None) -> str:
    if distance_km is None:
        return "Distance unknown"
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m away"
    text = f"{distance_km:.2f}".rstrip("0").rstrip(".")
    return f"{text}km away"
