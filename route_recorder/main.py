"""Command line entry point.

Usage examples:

    # Replay a CSV of fixes, snap the result and save it
    python -m route_recorder record --provider replay --csv drive.csv \
        --interval 0 --name "Morning drive" --map-html map.html

    # Record from the coarse IP-based provider for five minutes
    python -m route_recorder record --provider ip --duration 300

    python -m route_recorder list
    python -m route_recorder rename <route-id> "New name"
    python -m route_recorder export <route-id> --format gpx
    python -m route_recorder show <route-id> --map-html route.html --snap
    python -m route_recorder delete <route-id>
"""

from __future__ import annotations

import argparse
import logging
import threading
import time
from typing import List, Optional, Sequence

from .config import (
    EXPORT_OUTPUT_DIR,
    FIX_TIMEOUT_SECONDS,
    IP_LOCATION_FALLBACK_ENABLED,
    MIN_SIGNIFICANT_DISTANCE_M,
    ROUTE_STORE_DIR,
    SAMPLE_INTERVAL_SECONDS,
)
from .controller import RecordingController
from .errors import RouteRecorderError
from .export import SUPPORTED_FORMATS, export_to_file
from .geo import path_length
from .models import SavedRoute
from .recording import (
    FallbackLocationProvider,
    IpLocationProvider,
    LocationProvider,
    RecorderConfig,
    ReplayLocationProvider,
    TrackRecorder,
)
from .rendering import FoliumMapRenderer, NullRenderer, RenderSink
from .routing import RoadSnapper
from .storage import RouteStore

LOGGER = logging.getLogger(__name__)


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )
    else:
        logging.getLogger().setLevel(getattr(logging, level))


def build_provider(name: str, csv_path: Optional[str] = None) -> LocationProvider:
    """Select a location provider at runtime."""

    provider: LocationProvider
    if name == "replay":
        if not csv_path:
            raise RouteRecorderError("--csv is required for the replay provider")
        provider = ReplayLocationProvider(csv_path)
    elif name == "ip":
        provider = IpLocationProvider()
    else:
        raise RouteRecorderError(f"Unknown location provider: {name}")
    if IP_LOCATION_FALLBACK_ENABLED and name != "ip":
        provider = FallbackLocationProvider(provider, IpLocationProvider())
    return provider


def _resolve_route(store: RouteStore, route_id: str) -> SavedRoute:
    try:
        route = store.load(route_id)
    except ValueError:
        route = None
    if route is None:
        route = store.find_by_name(route_id)
    if route is None:
        raise RouteRecorderError(f"No saved route with id or name {route_id!r}")
    return route


def _wait_for_recording(
    provider: LocationProvider, duration: Optional[float], interval: float
) -> None:
    exhausted: Optional[threading.Event] = getattr(provider, "exhausted", None)
    deadline = time.monotonic() + duration if duration else None
    try:
        while True:
            if deadline is not None and time.monotonic() >= deadline:
                return
            if exhausted is not None and exhausted.wait(0.1):
                # Let the loop consume the final fix before stopping.
                time.sleep(interval + 0.1)
                return
            if exhausted is None:
                time.sleep(0.1)
    except KeyboardInterrupt:
        LOGGER.info("Interrupted, stopping recording")


def _cmd_record(args: argparse.Namespace, store: RouteStore) -> int:
    provider = build_provider(args.provider, args.csv)
    renderer: RenderSink = (
        FoliumMapRenderer(args.map_html) if args.map_html else NullRenderer()
    )
    recorder = TrackRecorder(
        provider,
        renderer=renderer,
        config=RecorderConfig(
            sample_interval_s=args.interval,
            fix_timeout_s=FIX_TIMEOUT_SECONDS,
            min_distance_m=args.min_distance,
        ),
    )
    controller = RecordingController(
        recorder, RoadSnapper(renderer=renderer), store, snap_on_stop=not args.no_snap
    )
    controller.start()
    _wait_for_recording(provider, args.duration, args.interval)
    outcome = controller.stop()
    print(f"{outcome.status}: {len(outcome.points)} points")
    if args.name is not None or args.save:
        route = controller.save(args.name)
        if route is not None:
            print(f"Saved route {route.id} ({route.name!r})")
    return 0


def _cmd_list(_: argparse.Namespace, store: RouteStore) -> int:
    routes = store.list()
    if not routes:
        print("No saved routes found.")
        return 0
    for route in routes:
        print(
            f"{route.id}  {route.timestamp:%Y-%m-%d %H:%M:%S}  "
            f"{len(route.points):>5} pts  {path_length(route.points) / 1000:.2f} km  "
            f"{route.name}"
        )
    return 0


def _cmd_rename(args: argparse.Namespace, store: RouteStore) -> int:
    if not args.name.strip():
        raise RouteRecorderError("New name must not be blank")
    route = _resolve_route(store, args.route)
    store.rename(route, args.name.strip())
    print(f"Renamed {route.id} to {route.name!r}")
    return 0


def _cmd_delete(args: argparse.Namespace, store: RouteStore) -> int:
    route = _resolve_route(store, args.route)
    store.delete(route)
    print(f"Route {route.name!r} deleted.")
    return 0


def _cmd_export(args: argparse.Namespace, store: RouteStore) -> int:
    route = _resolve_route(store, args.route)
    path = export_to_file(route, args.format, args.output_dir)
    print(f"Output written to {path}")
    return 0


def _cmd_show(args: argparse.Namespace, store: RouteStore) -> int:
    route = _resolve_route(store, args.route)
    renderer = FoliumMapRenderer(args.map_html)
    snapper = RoadSnapper(renderer=renderer)
    if args.snap:
        result = snapper.snap_and_render(route.points)
    else:
        result = snapper.render_raw(route.points)
    if result.geometry is None:
        print(f"Route {route.name!r} has no points to show.")
        return 0
    label = "snapped" if result.snapped else "raw"
    print(f"Showing {route.name!r} ({label}) in {args.map_html}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="route_recorder",
        description="Record, snap, store and export GPS routes",
    )
    parser.add_argument(
        "--store-dir",
        default=ROUTE_STORE_DIR,
        help="Directory holding saved routes (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Python logging level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    record = sub.add_parser("record", help="Record a track from a location provider")
    record.add_argument("--provider", choices=["replay", "ip"], default="replay")
    record.add_argument("--csv", help="CSV file with latitude,longitude,timestamp")
    record.add_argument(
        "--duration", type=float, help="Stop after this many seconds"
    )
    record.add_argument(
        "--interval",
        type=float,
        default=SAMPLE_INTERVAL_SECONDS,
        help="Seconds between location requests (default: %(default)s)",
    )
    record.add_argument(
        "--min-distance",
        type=float,
        default=MIN_SIGNIFICANT_DISTANCE_M,
        help="Minimum metres between kept points (default: %(default)s)",
    )
    record.add_argument("--name", help="Save the track under this name")
    record.add_argument(
        "--save", action="store_true", help="Save with a generated name"
    )
    record.add_argument(
        "--no-snap", action="store_true", help="Skip road snapping"
    )
    record.add_argument("--map-html", help="Write the route map to this HTML file")
    record.set_defaults(handler=_cmd_record)

    list_cmd = sub.add_parser("list", help="List saved routes, newest first")
    list_cmd.set_defaults(handler=_cmd_list)

    rename = sub.add_parser("rename", help="Rename a saved route")
    rename.add_argument("route", help="Route id (or name)")
    rename.add_argument("name", help="New display name")
    rename.set_defaults(handler=_cmd_rename)

    delete = sub.add_parser("delete", help="Delete a saved route")
    delete.add_argument("route", help="Route id (or name)")
    delete.set_defaults(handler=_cmd_delete)

    export = sub.add_parser("export", help="Export a saved route to a file")
    export.add_argument("route", help="Route id (or name)")
    export.add_argument("--format", required=True, choices=SUPPORTED_FORMATS)
    export.add_argument(
        "--output-dir",
        default=EXPORT_OUTPUT_DIR,
        help="Directory for the exported file (default: %(default)s)",
    )
    export.set_defaults(handler=_cmd_export)

    show = sub.add_parser("show", help="Render a saved route to an HTML map")
    show.add_argument("route", help="Route id (or name)")
    show.add_argument("--map-html", required=True, help="Output HTML path")
    show.add_argument(
        "--snap", action="store_true", help="Snap to roads before rendering"
    )
    show.set_defaults(handler=_cmd_show)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for ``python -m route_recorder``."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.log_level)
    store = RouteStore(args.store_dir)
    try:
        return args.handler(args, store)
    except (RouteRecorderError, OSError) as exc:
        LOGGER.error("%s", exc)
        return 1


__all__: List[str] = ["main", "build_provider"]
