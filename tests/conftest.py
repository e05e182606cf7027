"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable point/route factories and a
fake HTTP session so no test talks to the network.
"""
from __future__ import annotations

import os
import sys
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from route_recorder.models import GeoPoint, SavedRoute


T0 = datetime(2025, 3, 1, 8, 30, 0, tzinfo=timezone.utc)


# --- Factory helpers -------------------------------------------------
def make_point(lat: float, lon: float, seconds: float = 0.0) -> GeoPoint:
    return GeoPoint(lat, lon, T0 + timedelta(seconds=seconds))


def make_route(name: str = "Harbour loop", n_points: int = 3, **kwargs: Any) -> SavedRoute:
    points = [make_point(51.5 + i * 0.001, -0.12 - i * 0.0005, i * 5) for i in range(n_points)]
    return SavedRoute(name=name, timestamp=kwargs.pop("timestamp", T0), points=points, **kwargs)


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, json_error: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._json_error = json_error

    def json(self) -> Any:
        if self._json_error:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    def raise_for_status(self) -> None:
        import requests

        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:
    """Stands in for ``requests.Session``; records every GET."""

    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[Exception] = None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def sample_route() -> SavedRoute:
    return make_route()


@pytest.fixture
def empty_route() -> SavedRoute:
    return make_route(name="Empty", n_points=0)


@pytest.fixture
def single_point_route() -> SavedRoute:
    return make_route(name="Single", n_points=1)
