"""Fetch filtered OSM features, optionally split into grid cells."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from osmblock.features import BoundingBox, FeatureCollection
from osmblock.overpass.client import default_timeout, run_query
from osmblock.overpass.executor import ResilientQueryExecutor
from osmblock.overpass.query import (
    DEFAULT_SETTINGS,
    QueryConditions,
    build_filter_query,
    settings_prefix,
)
from osmblock.overpass.tiling import RegionTiler, TileRequest

LOG = logging.getLogger(__name__)


def fetch_osm(
    executor: ResilientQueryExecutor,
    conditions: QueryConditions,
    types: Sequence[str],
    *,
    cell_size_km: float | None = None,
    sleep_ms: int = 0,
    settings: Sequence[str] = DEFAULT_SETTINGS,
    timeout: float | None = None,
    attempts: int | None = None,
) -> FeatureCollection:
    """
    Fetch every feature of ``types`` within ``conditions.bounds`` matching the filters.

    With ``cell_size_km`` the bounds are split into cells queried one at a time, pausing
    ``sleep_ms`` before each, and the merged result is deduplicated by feature id.
    """
    if timeout is None:
        timeout = default_timeout()
    if cell_size_km:
        tiler = RegionTiler(executor)

        def query_cell(endpoint: str, bounds: BoundingBox) -> FeatureCollection:
            query = build_filter_query(conditions.with_bounds(bounds), types, settings)
            return run_query(endpoint, query, timeout=timeout)

        return tiler.execute_tiled(
            TileRequest(
                cell_size_km=cell_size_km,
                bounding_box=conditions.bounds,
                sleep_ms=sleep_ms,
            ),
            query_cell,
            attempts=attempts,
        )

    query = build_filter_query(conditions, types, settings)

    def query_all(endpoint: str) -> FeatureCollection:
        return run_query(endpoint, query, timeout=timeout)

    return executor.execute(query_all, attempts=attempts, name="filter query").dedupe_by_id()


def fetch_osm_raw(
    executor: ResilientQueryExecutor,
    query: str,
    *,
    bounds: BoundingBox | None = None,
    settings: Sequence[str] = DEFAULT_SETTINGS,
    timeout: float | None = None,
    attempts: int | None = None,
    name: str = "raw query",
) -> FeatureCollection:
    """Run a complete query body, prefixing the settings and the optional bbox."""
    if timeout is None:
        timeout = default_timeout()
    full_query = f"{settings_prefix(settings, bounds)}\n{query}"

    def query_raw(endpoint: str) -> FeatureCollection:
        return run_query(endpoint, full_query, timeout=timeout)

    LOG.debug("Prepared %s with settings %s", name, "".join(settings))
    return executor.execute(query_raw, attempts=attempts, name=name)
