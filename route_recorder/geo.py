"""Great-circle helpers for recorded tracks."""

from __future__ import annotations

import math
from typing import Sequence

from .models import GeoPoint

EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance in metres between two coordinates."""

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = lat2_rad - lat1_rad
    delta_lon = math.radians(lon2 - lon1)
    sin_half_lat = math.sin(delta_lat / 2.0)
    sin_half_lon = math.sin(delta_lon / 2.0)
    a = (
        sin_half_lat**2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * sin_half_lon**2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def distance_between(first: GeoPoint, second: GeoPoint) -> float:
    return haversine_distance(
        first.latitude, first.longitude, second.latitude, second.longitude
    )


def path_length(points: Sequence[GeoPoint]) -> float:
    """Sum of the distances between consecutive points (metres)."""

    total = 0.0
    for previous, current in zip(points, points[1:]):
        total += distance_between(previous, current)
    return total


__all__ = ["EARTH_RADIUS_M", "haversine_distance", "distance_between", "path_length"]
