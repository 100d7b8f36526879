"""Resolve a block location into its ordered ways and two intersection nodes."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from osmblock.block.linker import link_block
from osmblock.block.slicing import split_ways_at_nodes
from osmblock.errors import AmbiguousIntersectionError
from osmblock.features import Feature, FeatureCollection
from osmblock.overpass.client import default_timeout, run_query
from osmblock.overpass.executor import ResilientQueryExecutor
from osmblock.overpass.query import (
    AROUND_LAT_LON_TOLERANCE,
    DEFAULT_SETTINGS,
    build_location_query,
    build_point_block_query,
    osm_id_to_area_id,
    settings_prefix,
)
from osmblock.utils import line_length_m

LOG = logging.getLogger(__name__)

OSM_COPYRIGHT = (
    "The data included in this document is from www.openstreetmap.org. "
    "The data is made available under ODbL."
)
NEIGHBORHOOD_KEYS = ("country", "state", "city", "neighborhood")
CITY_KEYS = ("country", "state", "city")

_LAT_LON = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")

QueryRunner = Callable[..., FeatureCollection]


@dataclass(frozen=True)
class BlockLocation:
    """
    Where to look for a block.

    ``intersections`` holds two intersections, each either a pair of street names such
    as ``("Grand Avenue", "Perkins Street")`` or a single ``"lat,lon"`` string.
    ``osm_area_id`` is an already resolved OSM relation id that skips area resolution.
    """

    intersections: tuple[tuple[str, ...], ...]
    country: str | None = None
    state: str | None = None
    city: str | None = None
    neighborhood: str | None = None
    osm_area_id: str | None = None

    def describe(self, keys: Sequence[str] = NEIGHBORHOOD_KEYS) -> str:
        parts = [getattr(self, key) for key in keys if getattr(self, key)]
        return ", ".join(parts) or "(no area)"

    def lat_lon_points(self) -> list[tuple[float, float]] | None:
        """Return ``(lat, lon)`` pairs when every intersection is a coordinate string."""
        points: list[tuple[float, float]] = []
        for intersection in self.intersections:
            if len(intersection) != 1:
                return None
            match = _LAT_LON.match(intersection[0])
            if match is None:
                return None
            points.append((float(match.group(1)), float(match.group(2))))
        return points


class StreetNameResolver(Protocol):
    """Geocoding collaborator returning full street names (Avenue, not Ave)."""

    def full_street_names(self, location: BlockLocation) -> Sequence[Sequence[str]]:
        ...


class AreaResolver(Protocol):
    """Area collaborator returning the OSM relation id for the named area."""

    def osm_id(self, location: BlockLocation, keys: Sequence[str]) -> str | None:
        ...


@dataclass
class BlockFeatures:
    ways: list[Feature]
    nodes: list[Feature]


@dataclass
class BlockResult:
    """A resolved block with the location that produced it."""

    location: BlockLocation
    ways: list[Feature]
    nodes: list[Feature]
    searches: list[dict[str, Any]] = field(default_factory=list)

    @property
    def length_m(self) -> float:
        return sum(line_length_m(way.points) for way in self.ways)

    def to_feature_collection(self) -> dict[str, Any]:
        return FeatureCollection([*self.nodes, *self.ways]).to_geojson(
            generator="overpass-turbo",
            copyright=OSM_COPYRIGHT,
        )


def features_of_block(way_features: Sequence[Feature], node_features: Sequence[Feature]) -> BlockFeatures:
    """Cut ways at the intersection nodes and keep only the linked ways between them."""
    pieces = split_ways_at_nodes(way_features, node_features)
    return BlockFeatures(ways=link_block(pieces, node_features), nodes=list(node_features))


class BlockResolver:
    """
    Queries Overpass for a block and reduces the over-inclusive answer to the block.

    Named intersections are searched inside the neighborhood area first and the city area
    second; the first scope returning exactly two intersection nodes and at least one way
    is linked. Way and node queries run one after the other through the executor.
    """

    def __init__(
        self,
        executor: ResilientQueryExecutor,
        area_resolver: AreaResolver | None = None,
        street_resolver: StreetNameResolver | None = None,
        runner: QueryRunner = run_query,
        settings: Sequence[str] = DEFAULT_SETTINGS,
        around_tolerance_m: float = AROUND_LAT_LON_TOLERANCE,
        timeout: float | None = None,
        attempts: int | None = None,
    ) -> None:
        self.executor = executor
        self.area_resolver = area_resolver
        self.street_resolver = street_resolver
        self.runner = runner
        self.settings = tuple(settings)
        self.around_tolerance_m = around_tolerance_m
        self.timeout = timeout if timeout is not None else default_timeout()
        self.attempts = attempts

    def resolve(self, location: BlockLocation) -> BlockResult:
        points = location.lat_lon_points()
        if points is not None:
            return self._resolve_points(location, points)
        return self._resolve_named(location)

    def _resolve_points(self, location: BlockLocation, points: list[tuple[float, float]]) -> BlockResult:
        ways, nodes = self._query_block(
            lambda kind: build_point_block_query(kind, points, self.around_tolerance_m),
        )
        search = {"points": points, "nodes": len(nodes), "ways": len(ways)}
        if not _usable(ways, nodes):
            raise AmbiguousIntersectionError(
                "Unable to resolve block using the given locations with OpenStreetMap",
                [search],
            )
        block = features_of_block(ways, nodes)
        return BlockResult(location=location, ways=block.ways, nodes=block.nodes, searches=[search])

    def _resolve_named(self, location: BlockLocation) -> BlockResult:
        if self.street_resolver is not None:
            intersections = self.street_resolver.full_street_names(location)
            location = replace(
                location,
                intersections=tuple(tuple(streets) for streets in intersections),
            )

        searches: list[dict[str, Any]] = []
        for scope, osm_id in self._area_scopes(location):
            if osm_id is None:
                searches.append({"area": scope, "error": "area not found"})
                continue
            area_id = osm_id_to_area_id(osm_id)
            ways, nodes = self._query_block(
                lambda kind, area_id=area_id: build_location_query(kind, area_id, location.intersections),
            )
            searches.append({"area": scope, "area_id": area_id, "nodes": len(nodes), "ways": len(ways)})
            if _usable(ways, nodes):
                block = features_of_block(ways, nodes)
                LOG.info(
                    "Resolved block of %d way(s) in %s",
                    len(block.ways),
                    scope,
                )
                return BlockResult(location=location, ways=block.ways, nodes=block.nodes, searches=searches)
            LOG.info(
                "Area %s gave %d node(s) and %d way(s); trying the next scope",
                scope,
                len(nodes),
                len(ways),
            )

        raise AmbiguousIntersectionError(
            "Unable to resolve block using the given locations with OpenStreetMap",
            searches,
        )

    def _area_scopes(self, location: BlockLocation) -> Iterator[tuple[str, str | None]]:
        if location.osm_area_id is not None:
            yield f"osm relation {location.osm_area_id}", location.osm_area_id
            return
        if self.area_resolver is None:
            raise ValueError("Named intersections need an osm_area_id or an area resolver.")
        key_sets = [NEIGHBORHOOD_KEYS] if location.neighborhood else []
        key_sets.append(CITY_KEYS)
        for keys in key_sets:
            yield location.describe(keys), self.area_resolver.osm_id(location, keys)

    def _query_block(self, build: Callable[[str], str]) -> tuple[list[Feature], list[Feature]]:
        ways = self._run(build("way"), "block way query").of_kind("way")
        nodes = self._run(build("node"), "block node query").of_kind("node")
        return ways, nodes

    def _run(self, query: str, name: str) -> FeatureCollection:
        full_query = f"{settings_prefix(self.settings)}\n{query}"

        def query_endpoint(endpoint: str) -> FeatureCollection:
            return self.runner(endpoint, full_query, timeout=self.timeout)

        return self.executor.execute(query_endpoint, attempts=self.attempts, name=name)


def _usable(ways: Sequence[Feature], nodes: Sequence[Feature]) -> bool:
    return len(nodes) == 2 and len(ways) > 0
