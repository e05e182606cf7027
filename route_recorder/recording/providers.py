"""Location providers consumed by the recorder.

A provider answers ``get_fix(timeout_s)`` with a :class:`GeoPoint` or ``None``
when no fix is available this cycle. Providers may also raise
:class:`LocationProviderError`; the recorder treats that the same as ``None``.
Which provider is used is a runtime decision (see ``main.build_provider``).
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Union

import pandas as pd
import requests
from requests import Session

from ..config import IP_LOCATION_URL, REQUEST_TIMEOUT
from ..errors import LocationProviderError
from ..models import GeoPoint, ensure_utc, utcnow
from ..routing.session import get_default_session

_LOG = logging.getLogger(__name__)

ScriptedFix = Union[GeoPoint, None, Exception]


class LocationProvider(Protocol):
    def get_fix(self, timeout_s: float) -> Optional[GeoPoint]: ...


class StaticLocationProvider:
    """Serves a scripted sequence of fixes, one per call.

    Items may be ``None`` (no fix this cycle) or an exception instance, which
    is raised to simulate a provider failure. Once exhausted every call
    returns ``None`` and :attr:`exhausted` is set.
    """

    def __init__(self, fixes: Iterable[ScriptedFix]) -> None:
        self._fixes: List[ScriptedFix] = list(fixes)
        self._index = 0
        self._lock = threading.Lock()
        self.exhausted = threading.Event()
        if not self._fixes:
            self.exhausted.set()

    def get_fix(self, timeout_s: float) -> Optional[GeoPoint]:
        with self._lock:
            if self._index >= len(self._fixes):
                self.exhausted.set()
                return None
            item = self._fixes[self._index]
            self._index += 1
            if self._index >= len(self._fixes):
                self.exhausted.set()
        if isinstance(item, Exception):
            raise item
        return item


class ReplayLocationProvider(StaticLocationProvider):
    """Replays fixes from a CSV file with latitude/longitude/timestamp columns."""

    def __init__(
        self,
        filepath: str | Path,
        sep: str = ",",
        col_mapping: Dict[str, str] | None = None,
    ) -> None:
        self.filepath = Path(filepath)
        self.mapping = col_mapping or {
            "latitude": "latitude",
            "longitude": "longitude",
            "timestamp": "timestamp",
        }
        super().__init__(self._load(sep))

    def _load(self, sep: str) -> List[GeoPoint]:
        frame = pd.read_csv(self.filepath, sep=sep)
        missing = [col for col in self.mapping.values() if col not in frame.columns]
        if missing:
            raise LocationProviderError(
                f"Replay file {self.filepath} is missing columns: {missing}"
            )
        frame[self.mapping["timestamp"]] = pd.to_datetime(
            frame[self.mapping["timestamp"]], utc=True
        )
        fixes = [
            GeoPoint(
                latitude=float(row[self.mapping["latitude"]]),
                longitude=float(row[self.mapping["longitude"]]),
                timestamp=ensure_utc(row[self.mapping["timestamp"]].to_pydatetime()),
            )
            for _, row in frame.iterrows()
        ]
        _LOG.info("Loaded %d replay fixes from %s", len(fixes), self.filepath)
        return fixes


class IpLocationProvider:
    """Coarse location derived from the caller's public IP address."""

    def __init__(
        self,
        session: Session | None = None,
        url: str = IP_LOCATION_URL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session or get_default_session()
        self.url = url
        self._clock = clock

    def get_fix(self, timeout_s: float) -> Optional[GeoPoint]:
        timeout = min(timeout_s, REQUEST_TIMEOUT)
        _LOG.debug("GET %s timeout=%s", self.url, timeout)
        try:
            response = self._session.get(self.url, timeout=timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise LocationProviderError(f"IP location lookup failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise LocationProviderError(f"Unexpected response type: {type(payload)}")
        try:
            latitude = float(payload["latitude"])
            longitude = float(payload["longitude"])
        except (KeyError, TypeError, ValueError) as exc:
            raise LocationProviderError(
                f"IP location payload has no coordinates: {exc}"
            ) from exc
        return GeoPoint(latitude, longitude, self._clock())


class FallbackLocationProvider:
    """Consults ``fallback`` whenever ``primary`` has no fix."""

    def __init__(self, primary: LocationProvider, fallback: LocationProvider) -> None:
        self.primary = primary
        self.fallback = fallback

    def get_fix(self, timeout_s: float) -> Optional[GeoPoint]:
        try:
            fix = self.primary.get_fix(timeout_s)
        except LocationProviderError as exc:
            _LOG.debug("Primary provider failed: %s", exc)
            fix = None
        if fix is not None:
            return fix
        return self.fallback.get_fix(timeout_s)


__all__ = [
    "LocationProvider",
    "StaticLocationProvider",
    "ReplayLocationProvider",
    "IpLocationProvider",
    "FallbackLocationProvider",
]
