"""Durable route store: one JSON file per saved route.

Files are named ``<route id>.json`` inside the store directory. Writes go to a
temporary file that then replaces the target, so a crash never leaves a
half-written route behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ROUTE_STORE_DIR
from .errors import RouteFormatError
from .models import SavedRoute, ensure_utc

_LOGGER = logging.getLogger(__name__)

# One lock per resolved store directory, shared by every RouteStore instance
# in the process.
_DIRECTORY_LOCKS: Dict[Path, threading.Lock] = {}
_DIRECTORY_LOCKS_GUARD = threading.Lock()


def _directory_lock(directory: Path) -> threading.Lock:
    key = directory.resolve()
    with _DIRECTORY_LOCKS_GUARD:
        lock = _DIRECTORY_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _DIRECTORY_LOCKS[key] = lock
        return lock


class RouteStore:
    """Persistent store for :class:`SavedRoute` objects keyed by id."""

    def __init__(self, directory: str | Path = ROUTE_STORE_DIR) -> None:
        base = Path(directory)
        self._base_dir = base if base.is_absolute() else Path.cwd() / base
        self._lock = _directory_lock(self._base_dir)

    @property
    def directory(self) -> Path:
        return self._base_dir

    def _file_path(self, route_id: str) -> Path:
        if not route_id or "/" in route_id or "\\" in route_id or route_id in {".", ".."}:
            raise ValueError(f"Invalid route id: {route_id!r}")
        return self._base_dir / f"{route_id}.json"

    def _read_file(self, path: Path) -> Dict[str, Any]:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def _write_file(self, path: Path, payload: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.stem}-",
            suffix=".tmp",
            delete=False,
        ) as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
            temp_name = handle.name
        try:
            os.replace(temp_name, path)
        except OSError:
            Path(temp_name).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def save(self, route: SavedRoute) -> Path:
        """Write ``route`` as one unit, overwriting any previous version."""

        path = self._file_path(route.id)
        payload = route.to_dict()
        with self._lock:
            self._write_file(path, payload)
        _LOGGER.info(
            "Route saved id=%s name=%r points=%d", route.id, route.name, len(route.points)
        )
        return path

    def load(self, route_id: str) -> Optional[SavedRoute]:
        """Return the stored route, ``None`` when absent.

        Raises:
            RouteFormatError: If the stored unit exists but cannot be decoded.
        """

        path = self._file_path(route_id)
        try:
            payload = self._read_file(path)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            raise RouteFormatError(f"Failed reading route file {path}: {exc}") from exc
        return SavedRoute.from_dict(payload)

    def list(self) -> List[SavedRoute]:
        """Return every readable route, most recent first.

        Corrupted or unreadable files are skipped so one bad unit never hides
        the rest of the collection.
        """

        if not self._base_dir.is_dir():
            return []
        routes: List[SavedRoute] = []
        skipped = 0
        for path in sorted(self._base_dir.glob("*.json")):
            try:
                routes.append(SavedRoute.from_dict(self._read_file(path)))
            except (OSError, ValueError, RouteFormatError) as exc:
                skipped += 1
                _LOGGER.warning("Skipping unreadable route file %s: %s", path, exc)
        if skipped:
            _LOGGER.info("Listed %d routes (%d skipped)", len(routes), skipped)
        routes.sort(key=lambda route: ensure_utc(route.timestamp), reverse=True)
        return routes

    def find_by_name(self, name: str) -> Optional[SavedRoute]:
        """Most recent route called ``name``; names are not unique."""

        for route in self.list():
            if route.name == name:
                return route
        return None

    def rename(self, route: SavedRoute, new_name: str) -> Path:
        """Set the display name and resave; the id is untouched."""

        old_name = route.name
        route.name = new_name
        path = self.save(route)
        _LOGGER.debug("Route %s renamed %r -> %r", route.id, old_name, new_name)
        return path

    def delete(self, route: SavedRoute) -> bool:
        """Remove the stored unit. Returns False when nothing was stored."""

        path = self._file_path(route.id)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
        _LOGGER.info("Route deleted id=%s name=%r", route.id, route.name)
        return True


__all__ = ["RouteStore"]
