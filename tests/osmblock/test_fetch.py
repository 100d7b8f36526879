from __future__ import annotations

from typing import Any

import pytest

from osmblock.errors import ExhaustedAttemptsError, OverpassResponseError
from osmblock.features import Feature, FeatureCollection
from osmblock.overpass import fetch
from osmblock.overpass.executor import ResilientQueryExecutor
from osmblock.overpass.fetch import fetch_osm, fetch_osm_raw
from osmblock.overpass.query import QueryConditions
from osmblock.overpass.servers import EndpointSelector

BOUNDS = (59.90, 10.73, 59.92, 10.76)


@pytest.fixture
def queries(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    recorded: list[dict[str, Any]] = []

    def fake_run_query(endpoint: str, query: str, timeout: float | None = None) -> FeatureCollection:
        recorded.append({"endpoint": endpoint, "query": query, "timeout": timeout})
        return FeatureCollection(
            [
                Feature(id="node/1", geometry_type="Point", coordinates=(10.74, 59.91)),
                Feature(id=f"node/{len(recorded) + 1}", geometry_type="Point", coordinates=(10.75, 59.91)),
            ],
        )

    monkeypatch.setattr(fetch, "run_query", fake_run_query)
    return recorded


def test_fetch_osm_single_query(queries: list[dict[str, Any]]) -> None:
    executor = ResilientQueryExecutor(EndpointSelector(["https://a"]))
    conditions = QueryConditions(filters=("[highway]",), bounds=BOUNDS)
    result = fetch_osm(executor, conditions, ["way"], timeout=30)
    assert len(queries) == 1
    assert queries[0]["timeout"] == 30
    assert queries[0]["query"].startswith("[out:json][bbox:59.9,10.73,59.92,10.76];")
    assert "way[highway];" in queries[0]["query"]
    assert result.ids == ["node/1", "node/2"]


def test_fetch_osm_tiled_queries_each_cell(queries: list[dict[str, Any]]) -> None:
    executor = ResilientQueryExecutor(EndpointSelector(["https://a", "https://b"]))
    conditions = QueryConditions(filters=("[highway]",), bounds=BOUNDS)
    result = fetch_osm(executor, conditions, ["way"], cell_size_km=1.0, sleep_ms=10)
    assert len(queries) > 1
    assert [query["endpoint"] for query in queries[:3]] == ["https://a", "https://b", "https://a"]
    assert all("[bbox:59.9," in query["query"] for query in queries[:2])
    assert result.ids[0] == "node/1"
    assert len(result.ids) == len(set(result.ids)) == len(queries) + 1


def test_fetch_osm_raw_prefixes_settings(queries: list[dict[str, Any]]) -> None:
    executor = ResilientQueryExecutor(EndpointSelector(["https://a"]))
    fetch_osm_raw(executor, "node(1);\nout;", bounds=BOUNDS, settings=["[out:json]", "[timeout:25]"])
    assert queries[0]["query"] == "[out:json][timeout:25][bbox:59.9,10.73,59.92,10.76];\nnode(1);\nout;"


def test_fetch_osm_raises_when_all_servers_fail(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing(endpoint: str, query: str, timeout: float | None = None) -> FeatureCollection:
        raise OverpassResponseError(endpoint, 429, "Too Many Requests")

    monkeypatch.setattr(fetch, "run_query", failing)
    executor = ResilientQueryExecutor(EndpointSelector(["https://a", "https://b"]))
    with pytest.raises(ExhaustedAttemptsError) as excinfo:
        fetch_osm(executor, QueryConditions(filters=(), bounds=BOUNDS), ["node"])
    assert excinfo.value.endpoints == ["https://a", "https://b"]


def test_fetch_osm_rejects_bad_timeout_before_querying(
    queries: list[dict[str, Any]],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("OSM_REQUEST_TIMEOUT", "soon")
    executor = ResilientQueryExecutor(EndpointSelector(["https://a"]))
    with pytest.raises(ValueError, match="OSM_REQUEST_TIMEOUT"):
        fetch_osm(executor, QueryConditions(filters=(), bounds=BOUNDS), ["node"])
    assert queries == []
    monkeypatch.setenv("OSM_REQUEST_TIMEOUT", "12")
    fetch_osm(executor, QueryConditions(filters=(), bounds=BOUNDS), ["node"])
    assert queries[0]["timeout"] == 12.0
