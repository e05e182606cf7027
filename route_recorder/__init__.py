"""Route recorder package: capture, snap, store and export GPS tracks."""

from .errors import (
    LocationProviderError,
    RouteFormatError,
    RouteRecorderError,
    RoutingServiceError,
    UnsupportedFormatError,
)
from .export import export_route, get_file_extension
from .geo import haversine_distance
from .models import GeoPoint, SavedRoute
from .recording import TrackRecorder
from .routing import RoadSnapper, SnapResult
from .storage import RouteStore

__all__ = [
    "GeoPoint",
    "SavedRoute",
    "TrackRecorder",
    "RoadSnapper",
    "SnapResult",
    "RouteStore",
    "export_route",
    "get_file_extension",
    "haversine_distance",
    "RouteRecorderError",
    "LocationProviderError",
    "RoutingServiceError",
    "RouteFormatError",
    "UnsupportedFormatError",
]
