"""Foreground orchestration of a recording session.

Ties the recorder, snapper and store together the way an application screen
would: start, stop and show the result, optionally save it, and re-display
saved routes. Snapping and persistence run here, on the caller's thread,
after the recording loop has stopped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from .models import GeoPoint, SavedRoute
from .recording import Track, TrackRecorder
from .routing import RoadSnapper, SnapResult
from .storage import RouteStore

_LOG = logging.getLogger(__name__)


def default_route_name(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now()
    return f"Route {moment:%Y-%m-%d %H-%M}"


@dataclass(frozen=True, slots=True)
class StopOutcome:
    points: Track
    snap: SnapResult

    @property
    def status(self) -> str:
        if not self.points:
            return "Stopped"
        if len(self.points) == 1:
            return "Single point recorded"
        return "Route shown (snapped)" if self.snap.snapped else "Route shown (raw)"


class RecordingController:
    def __init__(
        self,
        recorder: TrackRecorder,
        snapper: RoadSnapper,
        store: RouteStore,
        *,
        snap_on_stop: bool = True,
    ) -> None:
        self.recorder = recorder
        self.snapper = snapper
        self.store = store
        self.snap_on_stop = snap_on_stop
        self._last_track: Track = ()

    @property
    def last_track(self) -> Track:
        return self._last_track

    def start(self) -> None:
        self.recorder.start()

    def stop(self) -> StopOutcome:
        """Stop recording and display the track, snapped when possible."""

        points = self.recorder.stop()
        self._last_track = points
        if self.snap_on_stop:
            snap = self.snapper.snap_and_render(points)
        else:
            snap = self.snapper.render_raw(points)
        outcome = StopOutcome(points=points, snap=snap)
        _LOG.info("%s (%d points)", outcome.status, len(points))
        return outcome

    def clear(self) -> None:
        self.recorder.clear()
        self._last_track = ()

    def save(
        self, name: Optional[str], points: Optional[Sequence[GeoPoint]] = None
    ) -> Optional[SavedRoute]:
        """Persist ``points`` (default: the last stopped track) under ``name``.

        Blank names and empty tracks are not saved and return ``None``.
        """

        track = tuple(points) if points is not None else self._last_track
        if not track:
            _LOG.info("Nothing recorded, route not saved")
            return None
        if name is None:
            name = default_route_name()
        if not name.strip():
            _LOG.info("Blank route name, route not saved")
            return None
        route = SavedRoute.from_points(name.strip(), track)
        self.store.save(route)
        return route

    def show(self, route: SavedRoute, *, snap: bool = False) -> SnapResult:
        """Re-display a saved route, raw by default."""

        if snap:
            return self.snapper.snap_and_render(route.points)
        return self.snapper.render_raw(route.points)


__all__ = ["RecordingController", "StopOutcome", "default_route_name"]
