"""Split oversized bounding boxes into cells and query them one after another."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from osmblock.features import BoundingBox, FeatureCollection
from osmblock.overpass.executor import ResilientQueryExecutor
from osmblock.utils import degree_steps_for_distance, grid_edges

LOG = logging.getLogger(__name__)

CellQueryFn = Callable[[str, BoundingBox], FeatureCollection]


@dataclass(frozen=True)
class TileRequest:
    """Grid parameters for a tiled query."""

    cell_size_km: float
    bounding_box: BoundingBox
    sleep_ms: int = 0


def partition_bounds(bounding_box: BoundingBox, cell_size_km: float) -> list[BoundingBox]:
    """
    Partition ``(lat_min, lon_min, lat_max, lon_max)`` into cells of ``cell_size_km``.

    Cells are ordered south to north, then west to east within a row. Edge cells are
    clipped to the box, so the union of the cells is exactly the input box.
    """
    if cell_size_km <= 0:
        raise ValueError(f"cell_size_km must be positive, got {cell_size_km}")
    lat_min, lon_min, lat_max, lon_max = bounding_box
    if lat_min >= lat_max or lon_min >= lon_max:
        raise ValueError(f"Bounding box {bounding_box} must have min values below max values.")

    mid_lat = (lat_min + lat_max) / 2.0
    lat_step, lon_step = degree_steps_for_distance(mid_lat, lon_min, cell_size_km)
    lat_edges = grid_edges(lat_min, lat_max, lat_step)
    lon_edges = grid_edges(lon_min, lon_max, lon_step)

    cells: list[BoundingBox] = []
    for south, north in zip(lat_edges[:-1], lat_edges[1:], strict=True):
        for west, east in zip(lon_edges[:-1], lon_edges[1:], strict=True):
            cells.append((float(south), float(west), float(north), float(east)))
    return cells


class RegionTiler:
    """Runs a cell query for every grid cell through a ResilientQueryExecutor."""

    def __init__(
        self,
        executor: ResilientQueryExecutor,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.executor = executor
        self._sleep = sleep

    def execute_tiled(
        self,
        request: TileRequest,
        query_fn: CellQueryFn,
        name: str = "Overpass cell query",
        attempts: int | None = None,
    ) -> FeatureCollection:
        """
        Query each cell sequentially and merge the results.

        Features sharing an id across cells are reduced to the first one seen. Any cell
        failing raises its ExhaustedAttemptsError and earlier cell results are discarded.
        """
        cells = partition_bounds(request.bounding_box, request.cell_size_km)
        LOG.info(
            "Splitting %s into %d cell(s) of %.3f km",
            request.bounding_box,
            len(cells),
            request.cell_size_km,
        )
        results: list[FeatureCollection] = []
        for index, cell in enumerate(cells):
            if request.sleep_ms:
                self._sleep(request.sleep_ms / 1000.0)
            LOG.info("Querying cell %d of %d %s", index + 1, len(cells), cell)
            results.append(
                self.executor.execute(
                    _bind_cell(query_fn, cell),
                    attempts=attempts,
                    name=f"{name} {index + 1}",
                ),
            )

        merged = FeatureCollection.concat(results)
        unique = merged.dedupe_by_id()
        LOG.debug("Merged %d feature(s) into %d unique", len(merged), len(unique))
        return unique


def _bind_cell(query_fn: CellQueryFn, cell: BoundingBox) -> Callable[[str], FeatureCollection]:
    def run(endpoint: str) -> FeatureCollection:
        return query_fn(endpoint, cell)

    return run
