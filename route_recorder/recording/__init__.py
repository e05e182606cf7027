"""Track capture: location providers, significance filter and sampling loop."""

from .filtering import filter_significant, is_significant
from .providers import (
    FallbackLocationProvider,
    IpLocationProvider,
    LocationProvider,
    ReplayLocationProvider,
    StaticLocationProvider,
)
from .recorder import RecorderConfig, Track, TrackRecorder

__all__ = [
    "filter_significant",
    "is_significant",
    "LocationProvider",
    "StaticLocationProvider",
    "ReplayLocationProvider",
    "IpLocationProvider",
    "FallbackLocationProvider",
    "RecorderConfig",
    "Track",
    "TrackRecorder",
]
