"""Road snapping against an OSRM-compatible routing service."""

from .session import create_default_session, get_default_session
from .snapper import RoadSnapper, SnapResult, format_coordinates

__all__ = [
    "RoadSnapper",
    "SnapResult",
    "format_coordinates",
    "create_default_session",
    "get_default_session",
]
