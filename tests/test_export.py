"""Tests for the interchange-format exporters."""

from __future__ import annotations

import csv
import io
import json
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Tuple

import pytest

from route_recorder.errors import UnsupportedFormatError
from route_recorder.export import (
    SUPPORTED_FORMATS,
    export_route,
    export_to_file,
    export_to_tcx,
    get_file_extension,
)
from route_recorder.geo import path_length
from route_recorder.models import SavedRoute
from tests.conftest import make_point, make_route

GPX_NS = {"gpx": "http://www.topografix.com/GPX/1/1"}
KML_NS = {"kml": "http://www.opengis.net/kml/2.2"}
TCX_NS = {"tcx": "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"}


def test_gpx_is_well_formed_and_preserves_order(sample_route: SavedRoute) -> None:
    root = ET.fromstring(export_route(sample_route, "gpx"))

    assert root.tag == "{http://www.topografix.com/GPX/1/1}gpx"
    assert root.attrib["version"] == "1.1"
    assert root.find("gpx:metadata/gpx:name", GPX_NS).text == sample_route.name
    assert root.find("gpx:metadata/gpx:time", GPX_NS).text == "2025-03-01T08:30:00Z"
    trkpts = root.findall("gpx:trk/gpx:trkseg/gpx:trkpt", GPX_NS)
    assert [(float(p.get("lat")), float(p.get("lon"))) for p in trkpts] == [
        (p.latitude, p.longitude) for p in sample_route.points
    ]
    assert [p.find("gpx:time", GPX_NS).text for p in trkpts] == [
        "2025-03-01T08:30:00Z",
        "2025-03-01T08:30:05Z",
        "2025-03-01T08:30:10Z",
    ]


def test_kml_coordinates_are_lon_lat_alt(sample_route: SavedRoute) -> None:
    root = ET.fromstring(export_route(sample_route, "kml"))

    placemark = root.find("kml:Document/kml:Placemark", KML_NS)
    assert placemark.find("kml:name", KML_NS).text == sample_route.name
    assert placemark.find("kml:description", KML_NS).text == "Recorded on 2025-03-01 08:30:00"
    assert placemark.find("kml:LineString/kml:tessellate", KML_NS).text == "1"
    raw = placemark.find("kml:LineString/kml:coordinates", KML_NS).text.split()
    tuples = [tuple(float(v) for v in entry.split(",")) for entry in raw]
    assert tuples == [(p.longitude, p.latitude, 0.0) for p in sample_route.points]


def test_geojson_feature_collection(sample_route: SavedRoute) -> None:
    payload = json.loads(export_route(sample_route, "geojson"))

    assert payload["type"] == "FeatureCollection"
    feature = payload["features"][0]
    assert feature["properties"] == {
        "name": sample_route.name,
        "timestamp": "2025-03-01T08:30:00Z",
        "points": 3,
    }
    assert feature["geometry"]["type"] == "LineString"
    assert feature["geometry"]["coordinates"] == [
        [p.longitude, p.latitude] for p in sample_route.points
    ]


def test_csv_rows(sample_route: SavedRoute) -> None:
    rows = list(csv.reader(io.StringIO(export_route(sample_route, "csv"))))

    assert rows[0] == ["Latitude", "Longitude", "Timestamp"]
    assert len(rows) == 4
    assert [float(v) for v in rows[1][:2]] == [51.5, -0.12]
    assert rows[3][2] == "2025-03-01 08:30:10"


def test_tcx_course_with_lap_totals(sample_route: SavedRoute) -> None:
    root = ET.fromstring(export_to_tcx(sample_route))

    course = root.find("tcx:Courses/tcx:Course", TCX_NS)
    assert course.find("tcx:Name", TCX_NS).text == sample_route.name
    lap = course.find("tcx:Lap", TCX_NS)
    assert lap.find("tcx:TotalTimeSeconds", TCX_NS).text == "10.0"
    assert float(lap.find("tcx:DistanceMeters", TCX_NS).text) == pytest.approx(
        path_length(sample_route.points), abs=0.05
    )
    trackpoints = course.findall("tcx:Track/tcx:Trackpoint", TCX_NS)
    assert len(trackpoints) == 3
    first = trackpoints[0]
    assert first.find("tcx:Time", TCX_NS).text == "2025-03-01T08:30:00Z"
    assert float(first.find("tcx:Position/tcx:LatitudeDegrees", TCX_NS).text) == 51.5


@pytest.mark.parametrize("fmt", SUPPORTED_FORMATS)
def test_empty_route_is_well_formed(empty_route: SavedRoute, fmt: str) -> None:
    content = export_route(empty_route, fmt)
    if fmt in {"gpx", "kml", "tcx"}:
        ET.fromstring(content)
    elif fmt == "geojson":
        assert json.loads(content)["features"][0]["geometry"]["coordinates"] == []
    else:
        assert content == "Latitude,Longitude,Timestamp\n"


def _parsed_coordinates(content: str, fmt: str) -> List[Tuple[float, float]]:
    """Read ``(lat, lon)`` pairs back out of an exported document."""

    if fmt == "gpx":
        root = ET.fromstring(content)
        return [
            (float(p.get("lat")), float(p.get("lon")))
            for p in root.findall("gpx:trk/gpx:trkseg/gpx:trkpt", GPX_NS)
        ]
    if fmt == "kml":
        root = ET.fromstring(content)
        raw = root.find("kml:Document/kml:Placemark/kml:LineString/kml:coordinates", KML_NS)
        pairs = []
        for entry in (raw.text or "").split():
            lon, lat, _alt = entry.split(",")
            pairs.append((float(lat), float(lon)))
        return pairs
    if fmt == "tcx":
        root = ET.fromstring(content)
        return [
            (
                float(tp.find("tcx:Position/tcx:LatitudeDegrees", TCX_NS).text),
                float(tp.find("tcx:Position/tcx:LongitudeDegrees", TCX_NS).text),
            )
            for tp in root.findall("tcx:Courses/tcx:Course/tcx:Track/tcx:Trackpoint", TCX_NS)
        ]
    if fmt == "geojson":
        coords = json.loads(content)["features"][0]["geometry"]["coordinates"]
        return [(lat, lon) for lon, lat in coords]
    rows = list(csv.reader(io.StringIO(content)))[1:]
    return [(float(row[0]), float(row[1])) for row in rows]


@pytest.mark.parametrize("fmt", SUPPORTED_FORMATS)
def test_single_point_route_parses_back(single_point_route: SavedRoute, fmt: str) -> None:
    content = export_route(single_point_route, fmt)
    point = single_point_route.points[0]
    assert _parsed_coordinates(content, fmt) == [(point.latitude, point.longitude)]


def test_single_point_tcx_lap_totals_are_zero(single_point_route: SavedRoute) -> None:
    tcx = ET.fromstring(export_route(single_point_route, "tcx"))
    lap = tcx.find("tcx:Courses/tcx:Course/tcx:Lap", TCX_NS)
    assert lap.find("tcx:TotalTimeSeconds", TCX_NS).text == "0.0"
    assert lap.find("tcx:DistanceMeters", TCX_NS).text == "0.0"


NEAR_ZERO = SavedRoute(
    name="Null Island",
    points=[
        make_point(0.0, 0.00003, 0),
        make_point(-0.00001, 0.0001, 2),
        make_point(-1e-07, -0.00000123, 4),
    ],
)


@pytest.mark.parametrize("fmt", SUPPORTED_FORMATS)
def test_near_zero_coordinates_parse_back(fmt: str) -> None:
    content = export_route(NEAR_ZERO, fmt)
    assert _parsed_coordinates(content, fmt) == [
        (p.latitude, p.longitude) for p in NEAR_ZERO.points
    ]


@pytest.mark.parametrize("fmt", ["gpx", "kml", "tcx", "csv"])
def test_coordinates_never_use_exponent_notation(fmt: str) -> None:
    content = export_route(NEAR_ZERO, fmt)
    assert not re.search(r"\d[eE][+-]?\d", content)
    assert "0.00003" in content
    assert "-0.0000001" in content


def test_gpx_coordinate_attributes_are_plain_decimals() -> None:
    root = ET.fromstring(export_route(NEAR_ZERO, "gpx"))
    decimal = re.compile(r"^-?\d+(\.\d+)?$")
    for trkpt in root.findall("gpx:trk/gpx:trkseg/gpx:trkpt", GPX_NS):
        assert decimal.match(trkpt.get("lat")), trkpt.get("lat")
        assert decimal.match(trkpt.get("lon")), trkpt.get("lon")


def test_characters_forbidden_in_xml_are_dropped() -> None:
    route = make_route(name="Bell\x01 route\x0b\ufffe", n_points=2)
    for fmt in ("gpx", "kml", "tcx"):
        root = ET.fromstring(export_route(route, fmt))
        names = {el.text for el in root.iter() if el.tag.rsplit("}", 1)[-1] in {"name", "Name"}}
        assert names == {"Bell route"}


def test_names_are_escaped() -> None:
    route = make_route(name='Tom & Jerry\'s <"loop">', n_points=2)
    for fmt in ("gpx", "kml", "tcx"):
        content = export_route(route, fmt)
        root = ET.fromstring(content)
        names = [el.text for el in root.iter() if el.tag.endswith("}name") or el.tag.endswith("}Name")]
        assert route.name in names


def test_decimal_separator_is_always_a_dot() -> None:
    route = SavedRoute(name="Precise", points=[make_point(1.23456789, -2.5, 0)])
    for fmt in SUPPORTED_FORMATS:
        content = export_route(route, fmt)
        assert "1.23456789" in content
        assert "1,23456789" not in content


@pytest.mark.parametrize("fmt", ["GPX", " kml ", "GeoJSON"])
def test_format_matching_ignores_case_and_whitespace(sample_route: SavedRoute, fmt: str) -> None:
    assert export_route(sample_route, fmt)


@pytest.mark.parametrize("fmt", ["xml", "", "shp"])
def test_unknown_format_is_rejected(sample_route: SavedRoute, fmt: str) -> None:
    with pytest.raises(UnsupportedFormatError, match="Unsupported format"):
        export_route(sample_route, fmt)


def test_file_extensions() -> None:
    assert [get_file_extension(f) for f in SUPPORTED_FORMATS] == [
        ".gpx",
        ".kml",
        ".geojson",
        ".csv",
        ".tcx",
    ]
    assert get_file_extension("xml") == ".txt"


def test_export_to_file_writes_content(tmp_path: Path, sample_route: SavedRoute) -> None:
    path = export_to_file(sample_route, "gpx", tmp_path / "out")

    assert path == tmp_path / "out" / "Harbour loop.gpx"
    assert path.read_text(encoding="utf-8") == export_route(sample_route, "gpx")


def test_export_to_file_sanitises_name(tmp_path: Path) -> None:
    route = make_route(name="../../etc/passwd", n_points=1)
    path = export_to_file(route, "csv", tmp_path)
    assert path.parent == tmp_path
    assert path.suffix == ".csv"


def test_export_to_file_rejects_unknown_format(tmp_path: Path, sample_route: SavedRoute) -> None:
    with pytest.raises(UnsupportedFormatError):
        export_to_file(sample_route, "xml", tmp_path)
    assert not any(tmp_path.iterdir())
