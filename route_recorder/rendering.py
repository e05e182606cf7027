"""Render sinks that receive live points and finished route geometry.

The recorder and snapper only build payloads and call these hooks; drawing is
up to the sink. ``FoliumMapRenderer`` writes an interactive Leaflet map to an
HTML file, ``EventLogRenderer`` keeps the events in memory.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol, Tuple, Union

import folium  # Using folium to build an interactive Leaflet map.

from .geojson import FeatureCollection
from .models import GeoPoint

LatLon = Tuple[float, float]
PathLike = Union[str, Path]

_LOG = logging.getLogger(__name__)

_LIVE_COLOR = "#2c7bb6"
_ROUTE_COLOR = "#d73027"
_DEFAULT_CENTER: LatLon = (0.0, 0.0)


class RenderSink(Protocol):
    """Receives incremental points, full path replacements and clears."""

    def add_point(self, point: GeoPoint) -> None: ...

    def set_route(self, collection: FeatureCollection) -> None: ...

    def clear(self) -> None: ...


class NullRenderer:
    """Discards every event."""

    def add_point(self, point: GeoPoint) -> None:
        return None

    def set_route(self, collection: FeatureCollection) -> None:
        return None

    def clear(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class RenderEvent:
    kind: str  # "add_point" | "set_route" | "clear"
    payload: Any = None


class EventLogRenderer:
    """Thread-safe in-memory log of render events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[RenderEvent] = []

    def add_point(self, point: GeoPoint) -> None:
        self._append(RenderEvent("add_point", point))

    def set_route(self, collection: FeatureCollection) -> None:
        self._append(RenderEvent("set_route", collection))

    def clear(self) -> None:
        self._append(RenderEvent("clear"))

    def _append(self, event: RenderEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[RenderEvent]:
        with self._lock:
            return list(self._events)

    @property
    def last_route(self) -> Optional[FeatureCollection]:
        for event in reversed(self.events):
            if event.kind == "set_route":
                return event.payload
            if event.kind == "clear":
                return None
        return None


def _collection_latlons(collection: FeatureCollection) -> List[LatLon]:
    """Return ``(lat, lon)`` pairs of every LineString in the collection."""

    latlons: List[LatLon] = []
    for feature in collection.features:
        if feature.geometry.type != "LineString":
            continue
        for position in feature.geometry.coordinates:
            if isinstance(position, (list, tuple)) and len(position) >= 2:
                latlons.append((float(position[1]), float(position[0])))
    return latlons


def build_route_map(
    collection: Optional[FeatureCollection],
    live_points: Iterable[GeoPoint] = (),
    *,
    output_html_path: Optional[PathLike] = None,
) -> folium.Map:
    """Create a map showing a route collection and any live points.

    Args:
        collection: Route geometry to draw, or ``None`` for live points only.
        live_points: Points recorded so far, drawn as a thin polyline.
        output_html_path: Optional path to persist the map as an HTML file.

    Returns:
        The :class:`folium.Map` instance.
    """

    live = [(p.latitude, p.longitude) for p in live_points]
    route_latlons = _collection_latlons(collection) if collection else []
    anchor = route_latlons or live
    center = anchor[0] if anchor else _DEFAULT_CENTER

    folium_map = folium.Map(location=center, zoom_start=15, control_scale=True)
    if collection is not None and collection.features:
        folium.GeoJson(
            collection.to_dict(),
            name="Route",
            style_function=lambda _feature: {
                "color": _ROUTE_COLOR,
                "weight": 4,
                "opacity": 0.9,
            },
        ).add_to(folium_map)
    if len(live) >= 2:
        folium.PolyLine(
            live, color=_LIVE_COLOR, weight=3, opacity=0.6, tooltip="Recorded track"
        ).add_to(folium_map)
    elif len(live) == 1:
        folium.CircleMarker(
            location=live[0], radius=5, color=_LIVE_COLOR, fill=True
        ).add_to(folium_map)
    if len(anchor) >= 2:
        lats = [lat for lat, _ in anchor]
        lons = [lon for _, lon in anchor]
        folium_map.fit_bounds([(min(lats), min(lons)), (max(lats), max(lons))])

    if output_html_path is not None:
        output_path = Path(output_html_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        folium_map.save(str(output_path))

    return folium_map


class FoliumMapRenderer:
    """Writes the current map to ``output_html_path`` whenever the route changes."""

    def __init__(self, output_html_path: PathLike) -> None:
        self.output_html_path = Path(output_html_path)
        self._lock = threading.Lock()
        self._live: List[GeoPoint] = []
        self._route: Optional[FeatureCollection] = None

    def add_point(self, point: GeoPoint) -> None:
        with self._lock:
            self._live.append(point)

    def set_route(self, collection: FeatureCollection) -> None:
        with self._lock:
            self._route = collection
            live = list(self._live)
        build_route_map(collection, live, output_html_path=self.output_html_path)
        _LOG.info("Route map written to %s", self.output_html_path)

    def clear(self) -> None:
        with self._lock:
            self._live.clear()
            self._route = None


def forward_safely(action: str, callback: Any, *args: Any) -> None:
    """Invoke a render hook, logging and dropping any failure."""

    try:
        callback(*args)
    except Exception as exc:
        _LOG.debug("Render %s failed: %s", action, exc)


__all__ = [
    "RenderSink",
    "RenderEvent",
    "NullRenderer",
    "EventLogRenderer",
    "FoliumMapRenderer",
    "build_route_map",
    "forward_safely",
]
