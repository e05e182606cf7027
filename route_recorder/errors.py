"""Central error types used across the application."""

from __future__ import annotations


class RouteRecorderError(RuntimeError):
    """Base error for route recorder failures."""


class LocationProviderError(RouteRecorderError):
    """Raised when a location provider cannot deliver a fix."""


class RoutingServiceError(RouteRecorderError):
    """Raised when the routing service fails or returns an unusable payload."""


class RouteFormatError(RouteRecorderError):
    """Raised when a stored route unit cannot be decoded."""


class UnsupportedFormatError(RouteRecorderError, ValueError):
    """Raised when an export is requested for an unknown format."""


__all__ = [
    "RouteRecorderError",
    "LocationProviderError",
    "RoutingServiceError",
    "RouteFormatError",
    "UnsupportedFormatError",
]
