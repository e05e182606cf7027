"""Dataclasses describing recorded points and saved routes."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping

from .errors import RouteFormatError

DEFAULT_ROUTE_NAME = "New Route"


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if not isinstance(raw, str):
        raise RouteFormatError(f"Invalid timestamp: {raw!r}")
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise RouteFormatError(f"Invalid timestamp: {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """Single timestamped fix in decimal degrees."""

    latitude: float
    longitude: float
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": ensure_utc(self.timestamp).isoformat(),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "GeoPoint":
        try:
            latitude = float(data["latitude"])
            longitude = float(data["longitude"])
            raw_timestamp = data["timestamp"]
        except (KeyError, TypeError, ValueError) as exc:
            raise RouteFormatError(f"Invalid point payload: {data!r}") from exc
        return GeoPoint(latitude, longitude, parse_timestamp(raw_timestamp))


@dataclass(slots=True)
class SavedRoute:
    """A named, persisted track.

    ``id`` is the storage key and never changes; ``name`` is for display and
    may collide across routes.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = DEFAULT_ROUTE_NAME
    timestamp: datetime = field(default_factory=utcnow)
    points: List[GeoPoint] = field(default_factory=list)

    @classmethod
    def from_points(cls, name: str, points: Iterable[GeoPoint]) -> "SavedRoute":
        return cls(name=name, points=list(points))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "timestamp": ensure_utc(self.timestamp).isoformat(),
            "points": [point.to_dict() for point in self.points],
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "SavedRoute":
        if not isinstance(data, Mapping):
            raise RouteFormatError(f"Route payload must be an object, got {type(data)}")
        route_id = data.get("id")
        if not isinstance(route_id, str) or not route_id:
            raise RouteFormatError("Route payload has no id")
        raw_points = data.get("points") or []
        if not isinstance(raw_points, list):
            raise RouteFormatError(f"Route {route_id} points must be a list")
        name = data.get("name")
        if not isinstance(name, str):
            name = DEFAULT_ROUTE_NAME
        return SavedRoute(
            id=route_id,
            name=name,
            timestamp=parse_timestamp(data.get("timestamp")),
            points=[GeoPoint.from_dict(item) for item in raw_points],
        )


__all__ = [
    "DEFAULT_ROUTE_NAME",
    "GeoPoint",
    "SavedRoute",
    "ensure_utc",
    "parse_timestamp",
    "utcnow",
]
