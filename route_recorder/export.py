"""Serialise saved routes into GPS interchange formats.

Supported formats: GPX 1.1, KML 2.2, GeoJSON, CSV and Garmin TCX v2. Every
exporter is a pure function of the route. Coordinates are written in plain
decimal notation (``.`` separator, never an exponent) and timestamps in UTC.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, List

from .config import EXPORT_CREATOR
from .errors import UnsupportedFormatError
from .geo import path_length
from .geojson import FeatureCollection
from .models import GeoPoint, SavedRoute, ensure_utc

LOGGER = logging.getLogger(__name__)

XML_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
CSV_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
_XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
_GPX_NAMESPACE = "http://www.topografix.com/GPX/1/1"
_KML_NAMESPACE = "http://www.opengis.net/kml/2.2"
_TCX_NAMESPACE = "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"

_FILE_EXTENSIONS: Dict[str, str] = {
    "gpx": ".gpx",
    "kml": ".kml",
    "geojson": ".geojson",
    "csv": ".csv",
    "tcx": ".tcx",
}
_FALLBACK_EXTENSION = ".txt"


# XML 1.0 Char production; anything outside it cannot appear in a document.
_XML_INVALID_CHARS = re.compile(
    "[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)


def _escape_xml(text: str) -> str:
    """Drop characters XML 1.0 forbids, then escape special XML characters."""
    return (
        _XML_INVALID_CHARS.sub("", text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def _number(value: float) -> str:
    """Shortest round-tripping decimal for ``value``, without an exponent."""
    return format(Decimal(repr(float(value))), "f")


def _xml_time(point_or_route: GeoPoint | SavedRoute) -> str:
    return ensure_utc(point_or_route.timestamp).strftime(XML_TIME_FORMAT)


def export_to_gpx(route: SavedRoute) -> str:
    """Export a route as a GPX 1.1 track (trk/trkseg/trkpt)."""

    name = _escape_xml(route.name)
    gpx_lines = [
        _XML_DECLARATION,
        f'<gpx version="1.1" creator="{_escape_xml(EXPORT_CREATOR)}"',
        f'     xmlns="{_GPX_NAMESPACE}"',
        f'     xmlns:xsi="{_XSI_NAMESPACE}"',
        f'     xsi:schemaLocation="{_GPX_NAMESPACE} '
        'http://www.topografix.com/GPX/1/1/gpx.xsd">',
        "  <metadata>",
        f"    <name>{name}</name>",
        f"    <time>{_xml_time(route)}</time>",
        "  </metadata>",
        "  <trk>",
        f"    <name>{name}</name>",
        "    <trkseg>",
    ]
    for point in route.points:
        gpx_lines.extend(
            [
                f'      <trkpt lat="{_number(point.latitude)}" '
                f'lon="{_number(point.longitude)}">',
                f"        <time>{_xml_time(point)}</time>",
                "      </trkpt>",
            ]
        )
    gpx_lines.extend(["    </trkseg>", "  </trk>", "</gpx>"])
    return "\n".join(gpx_lines)


def export_to_kml(route: SavedRoute) -> str:
    """Export a route as a KML 2.2 Placemark holding one LineString."""

    name = _escape_xml(route.name)
    recorded = ensure_utc(route.timestamp).strftime(CSV_TIME_FORMAT)
    kml_lines = [
        _XML_DECLARATION,
        f'<kml xmlns="{_KML_NAMESPACE}">',
        "  <Document>",
        f"    <name>{name}</name>",
        "    <Placemark>",
        f"      <name>{name}</name>",
        f"      <description>Recorded on {recorded}</description>",
        "      <Style>",
        "        <LineStyle>",
        "          <color>ff0000ff</color>",
        "          <width>4</width>",
        "        </LineStyle>",
        "      </Style>",
        "      <LineString>",
        "        <tessellate>1</tessellate>",
        "        <coordinates>",
    ]
    # KML coordinate tuples are lon,lat[,alt]
    for point in route.points:
        kml_lines.append(
            f"          {_number(point.longitude)},{_number(point.latitude)},0"
        )
    kml_lines.extend(
        [
            "        </coordinates>",
            "      </LineString>",
            "    </Placemark>",
            "  </Document>",
            "</kml>",
        ]
    )
    return "\n".join(kml_lines)


def export_to_geojson(route: SavedRoute) -> str:
    """Export a route as a FeatureCollection with one LineString feature."""

    collection = FeatureCollection.of_points(
        route.points,
        {
            "name": route.name,
            "timestamp": _xml_time(route),
            "points": len(route.points),
        },
    )
    return collection.encode(indent=2)


def export_to_csv(route: SavedRoute) -> str:
    """Export one ``Latitude,Longitude,Timestamp`` row per point."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Latitude", "Longitude", "Timestamp"])
    for point in route.points:
        writer.writerow(
            [
                _number(point.latitude),
                _number(point.longitude),
                ensure_utc(point.timestamp).strftime(CSV_TIME_FORMAT),
            ]
        )
    return buffer.getvalue()


def export_to_tcx(route: SavedRoute) -> str:
    """Export a route as a Garmin TCX course (Courses/Course/Track/Trackpoint)."""

    points = route.points
    if len(points) >= 2:
        elapsed = (
            ensure_utc(points[-1].timestamp) - ensure_utc(points[0].timestamp)
        ).total_seconds()
    else:
        elapsed = 0.0
    distance = path_length(points)

    tcx_lines = [
        _XML_DECLARATION,
        f'<TrainingCenterDatabase xmlns="{_TCX_NAMESPACE}"',
        f'     xmlns:xsi="{_XSI_NAMESPACE}"',
        f'     xsi:schemaLocation="{_TCX_NAMESPACE} '
        'http://www.garmin.com/xmlschemas/TrainingCenterDatabasev2.xsd">',
        "  <Courses>",
        "    <Course>",
        f"      <Name>{_escape_xml(route.name)}</Name>",
        "      <Lap>",
        f"        <TotalTimeSeconds>{max(elapsed, 0.0):.1f}</TotalTimeSeconds>",
        f"        <DistanceMeters>{distance:.1f}</DistanceMeters>",
        "        <Intensity>Active</Intensity>",
        "      </Lap>",
        "      <Track>",
    ]
    for point in points:
        tcx_lines.extend(
            [
                "        <Trackpoint>",
                f"          <Time>{_xml_time(point)}</Time>",
                "          <Position>",
                f"            <LatitudeDegrees>{_number(point.latitude)}</LatitudeDegrees>",
                f"            <LongitudeDegrees>{_number(point.longitude)}</LongitudeDegrees>",
                "          </Position>",
                "        </Trackpoint>",
            ]
        )
    tcx_lines.extend(
        [
            "      </Track>",
            "    </Course>",
            "  </Courses>",
            "</TrainingCenterDatabase>",
        ]
    )
    return "\n".join(tcx_lines)


_EXPORTERS: Dict[str, Callable[[SavedRoute], str]] = {
    "gpx": export_to_gpx,
    "kml": export_to_kml,
    "geojson": export_to_geojson,
    "csv": export_to_csv,
    "tcx": export_to_tcx,
}

SUPPORTED_FORMATS: List[str] = list(_EXPORTERS)


def _normalise_format(fmt: str) -> str:
    return fmt.strip().lower() if isinstance(fmt, str) else ""


def export_route(route: SavedRoute, fmt: str) -> str:
    """Export ``route`` in the requested format.

    Raises:
        UnsupportedFormatError: If ``fmt`` is not one of ``SUPPORTED_FORMATS``.
    """

    exporter = _EXPORTERS.get(_normalise_format(fmt))
    if exporter is None:
        raise UnsupportedFormatError(f"Unsupported format: {fmt}")
    return exporter(route)


def get_file_extension(fmt: str) -> str:
    """Canonical file suffix for ``fmt``; unknown formats map to ``.txt``."""

    return _FILE_EXTENSIONS.get(_normalise_format(fmt), _FALLBACK_EXTENSION)


def _safe_file_stem(route: SavedRoute) -> str:
    stem = re.sub(r"[^\w\-. ]+", "_", route.name).strip(" .")
    return stem or route.id


def export_to_file(route: SavedRoute, fmt: str, directory: str | Path) -> Path:
    """Export ``route`` and write it to ``directory``; returns the file path."""

    content = export_route(route, fmt)
    output_dir = Path(directory)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{_safe_file_stem(route)}{get_file_extension(fmt)}"
    with open(output_path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    LOGGER.info("Route %s exported as %s to %s", route.id, fmt, output_path)
    return output_path


__all__ = [
    "SUPPORTED_FORMATS",
    "export_route",
    "export_to_file",
    "export_to_gpx",
    "export_to_kml",
    "export_to_geojson",
    "export_to_csv",
    "export_to_tcx",
    "get_file_extension",
]
