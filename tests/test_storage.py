"""Tests for the JSON-per-route store."""

from __future__ import annotations

import json
import logging
import threading
from datetime import timedelta
from pathlib import Path

import pytest

from route_recorder.errors import RouteFormatError
from route_recorder.models import SavedRoute
from route_recorder.storage import RouteStore
from tests.conftest import T0, make_point, make_route


def test_save_then_list_returns_route(tmp_path: Path, sample_route: SavedRoute) -> None:
    store = RouteStore(tmp_path)
    path = store.save(sample_route)

    assert path == tmp_path / f"{sample_route.id}.json"
    routes = store.list()
    assert routes == [sample_route]


def test_round_trip_preserves_every_field(tmp_path: Path) -> None:
    store = RouteStore(tmp_path)
    route = SavedRoute(
        name="Ünïcode & <friends>",
        timestamp=T0,
        points=[make_point(-33.8688, 151.2093, 0), make_point(-33.8690, 151.2101, 7.5)],
    )
    store.save(route)

    loaded = store.load(route.id)
    assert loaded == route
    assert loaded.points[1].timestamp == T0 + timedelta(seconds=7.5)


def test_save_overwrites_existing_unit(tmp_path: Path, sample_route: SavedRoute) -> None:
    store = RouteStore(tmp_path)
    store.save(sample_route)
    sample_route.points.append(make_point(51.6, -0.2, 60))
    store.save(sample_route)

    assert len(list(tmp_path.glob("*.json"))) == 1
    assert len(store.load(sample_route.id).points) == 4
    assert not list(tmp_path.glob("*.tmp"))


def test_list_is_most_recent_first(tmp_path: Path) -> None:
    store = RouteStore(tmp_path)
    older = make_route("Older", timestamp=T0)
    newest = make_route("Newest", timestamp=T0 + timedelta(days=2))
    middle = make_route("Middle", timestamp=T0 + timedelta(days=1))
    for route in (older, newest, middle):
        store.save(route)

    assert [r.name for r in store.list()] == ["Newest", "Middle", "Older"]


def test_list_missing_directory_is_empty(tmp_path: Path) -> None:
    assert RouteStore(tmp_path / "never-created").list() == []


def test_corrupt_file_is_skipped(
    tmp_path: Path, sample_route: SavedRoute, caplog: pytest.LogCaptureFixture
) -> None:
    store = RouteStore(tmp_path)
    store.save(sample_route)
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "no-id.json").write_text(json.dumps({"name": "x"}), encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        routes = store.list()

    assert routes == [sample_route]
    assert "broken.json" in caplog.text
    assert "no-id.json" in caplog.text


def test_load_missing_returns_none(tmp_path: Path) -> None:
    assert RouteStore(tmp_path).load("does-not-exist") is None


def test_load_corrupt_raises_format_error(tmp_path: Path) -> None:
    (tmp_path / "bad.json").write_text("[1, 2", encoding="utf-8")
    with pytest.raises(RouteFormatError):
        RouteStore(tmp_path).load("bad")


@pytest.mark.parametrize("route_id", ["", ".", "..", "../escape", "a\\b"])
def test_unsafe_ids_are_rejected(tmp_path: Path, route_id: str) -> None:
    with pytest.raises(ValueError):
        RouteStore(tmp_path).load(route_id)


def test_rename_keeps_id(tmp_path: Path, sample_route: SavedRoute) -> None:
    store = RouteStore(tmp_path)
    store.save(sample_route)
    original_id = sample_route.id

    store.rename(sample_route, "Renamed")

    routes = store.list()
    assert len(routes) == 1
    assert routes[0].id == original_id
    assert routes[0].name == "Renamed"


def test_delete_removes_unit(tmp_path: Path, sample_route: SavedRoute) -> None:
    store = RouteStore(tmp_path)
    store.save(sample_route)
    assert store.delete(sample_route) is True
    assert store.list() == []


def test_delete_missing_is_noop(tmp_path: Path, sample_route: SavedRoute) -> None:
    store = RouteStore(tmp_path)
    other = make_route("Other")
    store.save(other)

    assert store.delete(sample_route) is False
    assert store.list() == [other]


def test_find_by_name_returns_most_recent_match(tmp_path: Path) -> None:
    store = RouteStore(tmp_path)
    old = make_route("Commute", timestamp=T0)
    new = make_route("Commute", timestamp=T0 + timedelta(hours=3))
    store.save(old)
    store.save(new)

    assert store.find_by_name("Commute").id == new.id
    assert store.find_by_name("Nope") is None


def test_empty_route_round_trips(tmp_path: Path, empty_route: SavedRoute) -> None:
    store = RouteStore(tmp_path)
    store.save(empty_route)
    assert store.load(empty_route.id).points == []


def test_concurrent_saves_all_persist(tmp_path: Path) -> None:
    store = RouteStore(tmp_path)
    routes = [make_route(f"Route {i}", n_points=5) for i in range(20)]
    threads = [threading.Thread(target=store.save, args=(route,)) for route in routes]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert {r.id for r in store.list()} == {r.id for r in routes}


def test_relative_directory_resolves_against_cwd(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    store = RouteStore("saved")
    assert store.directory == tmp_path / "saved"


def test_writers_on_separate_store_instances_do_not_collide(tmp_path: Path) -> None:
    route = make_route("Shared", n_points=4)
    errors = []

    def writer() -> None:
        store = RouteStore(tmp_path)
        for i in range(50):
            route_copy = SavedRoute(
                id=route.id, name=f"Shared {i}", timestamp=route.timestamp, points=route.points
            )
            try:
                store.save(route_copy)
            except Exception as exc:  # collected and asserted below
                errors.append(exc)

    threads = [threading.Thread(target=writer) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert [p.name for p in tmp_path.iterdir()] == [f"{route.id}.json"]
    loaded = RouteStore(tmp_path).load(route.id)
    assert loaded.name.startswith("Shared ")
    assert loaded.points == route.points
