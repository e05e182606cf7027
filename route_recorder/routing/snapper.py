"""Road snapping through an OSRM-compatible routing service.

The finished track is submitted in order to the ``/route`` endpoint. When the
service answers with a usable route its GeoJSON geometry replaces the raw
track; any failure degrades to a straight-line path through the raw points.
Snapping failures are never raised to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Any, Optional, Sequence, Tuple

import requests
from cachetools import TTLCache
from requests import Session

from ..config import (
    OSRM_BASE_URL,
    OSRM_PROFILE,
    REQUEST_TIMEOUT,
    SNAP_CACHE_SIZE,
    SNAP_CACHE_TTL_SECONDS,
)
from ..errors import RoutingServiceError
from ..geojson import FeatureCollection, Geometry
from ..models import GeoPoint
from ..rendering import RenderSink, forward_safely
from .session import get_default_session

_LOG = logging.getLogger(__name__)

_SnapCacheKey = Tuple[str, str]


@dataclass(frozen=True, slots=True)
class SnapResult:
    """Outcome of a snap attempt.

    ``snapped`` is informational: False means the raw track is shown.
    ``geometry`` is None only when there was nothing to show.
    """

    snapped: bool
    geometry: Optional[FeatureCollection]


def format_coordinates(points: Sequence[GeoPoint]) -> str:
    """Convert points to the OSRM ``lon,lat;lon,lat;...`` form."""
    return ";".join(
        f"{float(p.longitude)!r},{float(p.latitude)!r}" for p in points
    )


class RoadSnapper:
    """OSRM adapter that turns a finished track into renderable geometry."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        base_url: str = OSRM_BASE_URL,
        profile: str = OSRM_PROFILE,
        timeout: float = REQUEST_TIMEOUT,
        renderer: RenderSink | None = None,
        cache_size: int = SNAP_CACHE_SIZE,
    ) -> None:
        self._session = session or get_default_session()
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout
        self.renderer = renderer
        self._cache: TTLCache[_SnapCacheKey, Geometry] = TTLCache(
            maxsize=max(1, cache_size), ttl=SNAP_CACHE_TTL_SECONDS
        )
        self._cache_lock = RLock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def snap(self, points: Sequence[GeoPoint]) -> SnapResult:
        """Return road-aligned geometry for ``points`` or the raw fallback."""

        if not points:
            return SnapResult(snapped=False, geometry=None)
        if len(points) == 1:
            return SnapResult(snapped=False, geometry=FeatureCollection.of_points(points))

        try:
            geometry = self.fetch_route_geometry(points)
        except RoutingServiceError as exc:
            _LOG.warning(
                "Road snapping failed for %d points, showing raw track: %s",
                len(points),
                exc,
            )
            return SnapResult(snapped=False, geometry=FeatureCollection.of_points(points))
        return SnapResult(snapped=True, geometry=FeatureCollection.of_geometry(geometry))

    def snap_and_render(self, points: Sequence[GeoPoint]) -> SnapResult:
        result = self.snap(points)
        if result.geometry is not None:
            self._render(result.geometry)
        return result

    def render_raw(self, points: Sequence[GeoPoint]) -> SnapResult:
        """Show ``points`` as a straight-line path without calling the service."""

        if not points:
            return SnapResult(snapped=False, geometry=None)
        collection = FeatureCollection.of_points(points)
        self._render(collection)
        return SnapResult(snapped=False, geometry=collection)

    def fetch_route_geometry(self, points: Sequence[GeoPoint]) -> Geometry:
        """Call ``/route`` and return the first route's geometry.

        Raises:
            RoutingServiceError: On network errors, non-success responses, or
                payloads without a usable ``routes[0].geometry``.
        """

        if len(points) < 2:
            raise RoutingServiceError("At least two points are required to snap a route.")

        coordinates = format_coordinates(points)
        cache_key: _SnapCacheKey = (self.profile, coordinates)
        with self._cache_lock:
            cached = self._cache.get(cache_key)
        if cached is not None:
            _LOG.debug("Snap cache hit for %d points", len(points))
            return cached

        url = f"{self.base_url}/route/v1/{self.profile}/{coordinates}"
        payload = self._get_json(url)
        geometry = self._parse_route(payload)
        with self._cache_lock:
            self._cache[cache_key] = geometry
        return geometry

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_json(self, url: str) -> Any:
        params = {"overview": "full", "geometries": "geojson", "steps": "false"}
        _LOG.debug("GET %s params=%s", url, params)
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RoutingServiceError(f"Routing service unreachable: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise RoutingServiceError(
                f"Routing service returned HTTP {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RoutingServiceError(f"Routing response is not JSON: {exc}") from exc

    @staticmethod
    def _parse_route(payload: Any) -> Geometry:
        if not isinstance(payload, dict):
            raise RoutingServiceError(f"Unexpected response type: {type(payload)}")
        code = payload.get("code")
        if code is not None and code != "Ok":
            raise RoutingServiceError(
                f"OSRM error {code}: {payload.get('message', 'Unknown error')}"
            )
        routes = payload.get("routes")
        if not isinstance(routes, list) or not routes:
            raise RoutingServiceError("Routing response contains no routes")
        first = routes[0]
        if not isinstance(first, dict) or "geometry" not in first:
            raise RoutingServiceError("First route has no geometry")
        return Geometry.from_mapping(first["geometry"])

    def _render(self, collection: FeatureCollection) -> None:
        if self.renderer is None:
            return
        forward_safely("set_route", self.renderer.set_route, collection)


__all__ = ["RoadSnapper", "SnapResult", "format_coordinates"]
