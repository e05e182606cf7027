"""Cancellable sampling loop that builds the live track.

One background thread per recording session. The loop asks the location
provider for a fix, runs it through the significance filter and then waits
for the next sample interval. Both waits watch the session's cancellation
event, so ``stop()`` takes effect immediately.

The live track has a single writer (the current session). Readers only ever
get tuple snapshots taken under the track lock, and no I/O happens while the
lock is held.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..config import (
    FIX_TIMEOUT_SECONDS,
    MIN_SIGNIFICANT_DISTANCE_M,
    SAMPLE_INTERVAL_SECONDS,
)
from ..errors import LocationProviderError
from ..models import GeoPoint
from ..rendering import RenderSink, forward_safely
from .filtering import is_significant
from .providers import LocationProvider

Track = Tuple[GeoPoint, ...]

_SESSION_IDS = itertools.count(1)


@dataclass(slots=True)
class RecorderConfig:
    sample_interval_s: float = SAMPLE_INTERVAL_SECONDS
    fix_timeout_s: float = FIX_TIMEOUT_SECONDS
    min_distance_m: float = MIN_SIGNIFICANT_DISTANCE_M
    # Granularity at which a pending fix request notices cancellation.
    cancel_poll_s: float = 0.05
    logger: logging.Logger | None = None


@dataclass(slots=True)
class _RecordingSession:
    session_id: int
    cancel: threading.Event = field(default_factory=threading.Event)
    accepted: int = 0
    failures: int = 0


class TrackRecorder:
    """Owns the live track and the background sampling loop."""

    def __init__(
        self,
        provider: LocationProvider,
        renderer: RenderSink | None = None,
        config: RecorderConfig | None = None,
    ) -> None:
        self.provider = provider
        self.renderer = renderer
        self.config = config or RecorderConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._points: List[GeoPoint] = []
        self._session: Optional[_RecordingSession] = None
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._session is not None

    def start(self) -> None:
        """Begin a new session, cancelling any session already running."""

        session = _RecordingSession(session_id=next(_SESSION_IDS))
        with self._lock:
            previous = self._session
            if previous is not None:
                previous.cancel.set()
            self._session = session
            self._points = []
        if previous is not None:
            self._log.info(
                "Recording session %d superseded by session %d",
                previous.session_id,
                session.session_id,
            )
        thread = threading.Thread(
            target=self._run,
            args=(session,),
            name=f"track-recorder-{session.session_id}",
            daemon=True,
        )
        self._thread = thread
        thread.start()
        self._log.info("Recording session %d started", session.session_id)

    def stop(self) -> Track:
        """Cancel the running session (if any) and return the track so far."""

        with self._lock:
            session = self._session
            if session is not None:
                session.cancel.set()
                self._session = None
            snapshot = tuple(self._points)
        if session is not None:
            self._log.info(
                "Recording session %d stopped with %d points",
                session.session_id,
                len(snapshot),
            )
        return snapshot

    def clear(self) -> None:
        """Stop recording, drop the track and clear the renderer."""

        self.stop()
        with self._lock:
            self._points = []
        if self.renderer is not None:
            forward_safely("clear", self.renderer.clear)

    def snapshot(self) -> Track:
        with self._lock:
            return tuple(self._points)

    def wait(self, timeout: float | None = None) -> bool:
        """Join the most recent loop thread. Returns True once it has exited."""

        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _new_executor(self, session: _RecordingSession) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"location-fix-{session.session_id}"
        )

    def _run(self, session: _RecordingSession) -> None:
        executor = self._new_executor(session)
        try:
            while not session.cancel.is_set():
                fix, hung = self._request_fix(session, executor)
                if hung:
                    # The worker is still stuck in the provider; later requests
                    # must not queue behind it.
                    executor.shutdown(wait=False, cancel_futures=True)
                    executor = self._new_executor(session)
                if fix is not None and not session.cancel.is_set():
                    if self._offer(session, fix):
                        self._forward(session, fix)
                if session.cancel.wait(self.config.sample_interval_s):
                    break
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
            self._log.debug(
                "Recording loop %d exited (accepted=%d, failed fixes=%d)",
                session.session_id,
                session.accepted,
                session.failures,
            )

    def _request_fix(
        self, session: _RecordingSession, executor: ThreadPoolExecutor
    ) -> Tuple[Optional[GeoPoint], bool]:
        """Return ``(fix, hung)``; ``hung`` means the provider call is still running."""
        timeout_s = self.config.fix_timeout_s
        future: Future[Optional[GeoPoint]] = executor.submit(
            self.provider.get_fix, timeout_s
        )
        deadline = time.monotonic() + timeout_s
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                hung = not future.cancel() and not future.done()
                self._note_failure(session, f"no fix within {timeout_s:.1f}s")
                return None, hung
            try:
                fix = future.result(timeout=min(self.config.cancel_poll_s, remaining))
            except FutureTimeout:
                if future.done():
                    self._note_failure(session, "provider timed out")
                    return None, False
                if session.cancel.is_set():
                    future.cancel()
                    return None, False
                continue
            except LocationProviderError as exc:
                self._note_failure(session, str(exc))
                return None, False
            except Exception as exc:
                self._note_failure(session, f"unexpected provider error: {exc!r}")
                return None, False
            if fix is not None:
                session.failures = 0
            return fix, False

    def _note_failure(self, session: _RecordingSession, reason: str) -> None:
        session.failures += 1
        # Report a failure streak once; repeat failures stay at debug level.
        if session.failures == 1:
            self._log.warning("No location fix: %s", reason)
        else:
            self._log.debug(
                "No location fix (%d in a row): %s", session.failures, reason
            )

    def _offer(self, session: _RecordingSession, fix: GeoPoint) -> bool:
        """Filter-check and append ``fix`` as one indivisible step."""

        with self._lock:
            if session.cancel.is_set() or self._session is not session:
                return False
            last = self._points[-1] if self._points else None
            if not is_significant(last, fix, self.config.min_distance_m):
                return False
            self._points.append(fix)
            session.accepted += 1
            return True

    def _forward(self, session: _RecordingSession, fix: GeoPoint) -> None:
        if self.renderer is None or session.cancel.is_set():
            return
        forward_safely("add_point", self.renderer.add_point, fix)


__all__ = ["RecorderConfig", "TrackRecorder", "Track"]
