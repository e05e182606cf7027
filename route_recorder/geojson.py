"""Typed GeoJSON payloads sent to renderers and exporters.

Map payloads are always a FeatureCollection wrapping LineString features.
Building them through these classes keeps the structure in one place instead
of hand-assembling dictionaries at each call site.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from .errors import RoutingServiceError
from .models import GeoPoint

Position = List[float]


@dataclass(frozen=True, slots=True)
class Geometry:
    type: str
    coordinates: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "coordinates": self.coordinates}

    @staticmethod
    def line_string(points: Sequence[GeoPoint]) -> "Geometry":
        """LineString through ``points``; GeoJSON positions are ``[lon, lat]``."""
        return Geometry(
            type="LineString",
            coordinates=[[p.longitude, p.latitude] for p in points],
        )

    @staticmethod
    def from_mapping(raw: Any) -> "Geometry":
        """Validate a geometry object received from an external service."""
        if not isinstance(raw, Mapping):
            raise RoutingServiceError(f"Geometry must be an object, got {type(raw)}")
        geometry_type = raw.get("type")
        coordinates = raw.get("coordinates")
        if not isinstance(geometry_type, str) or not isinstance(coordinates, list):
            raise RoutingServiceError("Geometry is missing type or coordinates")
        if geometry_type == "LineString" and len(coordinates) < 2:
            raise RoutingServiceError(
                f"LineString needs at least two positions, got {len(coordinates)}"
            )
        if not coordinates:
            raise RoutingServiceError(f"{geometry_type} geometry has no coordinates")
        return Geometry(type=geometry_type, coordinates=coordinates)


@dataclass(frozen=True, slots=True)
class Feature:
    geometry: Geometry
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "properties": dict(self.properties),
            "geometry": self.geometry.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class FeatureCollection:
    features: List[Feature] = field(default_factory=list)

    @staticmethod
    def of_geometry(
        geometry: Geometry, properties: Dict[str, Any] | None = None
    ) -> "FeatureCollection":
        return FeatureCollection([Feature(geometry, dict(properties or {}))])

    @staticmethod
    def of_points(
        points: Sequence[GeoPoint], properties: Dict[str, Any] | None = None
    ) -> "FeatureCollection":
        return FeatureCollection.of_geometry(Geometry.line_string(points), properties)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [feature.to_dict() for feature in self.features],
        }

    def encode(self, *, indent: int | None = None) -> str:
        """Serialise to JSON text (``.`` decimal separator regardless of locale)."""
        separators = (",", ":") if indent is None else (",", ": ")
        return json.dumps(
            self.to_dict(), indent=indent, separators=separators, ensure_ascii=False
        )


__all__ = ["Geometry", "Feature", "FeatureCollection", "Position"]
