"""Overpass QL templating for filter, bounding box and intersection queries."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, replace

from osmblock.errors import AmbiguousIntersectionError
from osmblock.features import BoundingBox

# Tolerance in meters when searching for intersection nodes around a lat/lon point.
# Google, OSM and hand-marked intersections usually agree within this distance.
AROUND_LAT_LON_TOLERANCE = 10
AREA_ID_OFFSET = 3_600_000_000
DEFAULT_SETTINGS: tuple[str, ...] = ("[out:json]",)


@dataclass(frozen=True)
class QueryConditions:
    """Filters applied to every requested type, limited to ``bounds``."""

    filters: tuple[str, ...]
    bounds: BoundingBox

    def with_bounds(self, bounds: BoundingBox) -> QueryConditions:
        return replace(self, bounds=bounds)


def osm_id_to_area_id(osm_id: str | int) -> str:
    """Convert an OSM relation id to the matching Overpass area id."""
    return str(int(osm_id) + AREA_ID_OFFSET)


def osm_always(prop: str) -> str:
    return f"[{prop}]"


def osm_condition(operator: str, prop: str, value: object) -> str:
    return f'["{prop}" {operator} "{value}"]'


def osm_equals(prop: str, value: object) -> str:
    return osm_condition("=", prop, value)


def osm_not_equal(prop: str, value: object) -> str:
    return osm_condition("!=", prop, value)


def osm_t_condition(operator: str, prop: str, value: object) -> str:
    """Tag comparison for use inside an ``if:`` evaluator."""
    return f't["{prop}"] {operator} "{value}"'


def osm_not_equal_with_tag(prop: str, value: object) -> str:
    return osm_t_condition("!=", prop, value)


def osm_id_equals(osm_id: str | int) -> str:
    return f"({osm_id})"


def osm_if(expression: str) -> str:
    return f"(if: {expression})"


def osm_and(expressions: Sequence[str]) -> str:
    return " && ".join(expressions)


def osm_or(expressions: Sequence[str]) -> str:
    return " || ".join(expressions)


# Roads and paths that are not sidewalks, crossings or parking aisles.
HIGHWAY_WAY_FILTERS = "".join(
    [
        osm_always("highway"),
        osm_not_equal("highway", "driveway"),
        osm_not_equal("footway", "crossing"),
        osm_not_equal("footway", "sidewalk"),
        osm_not_equal("service", "parking_aisle"),
        osm_not_equal("service", "driveway"),
        osm_not_equal("service", "drive-through"),
        osm_if(
            osm_or(
                [
                    osm_not_equal_with_tag("highway", "service"),
                    osm_not_equal_with_tag("access", "private"),
                ],
            ),
        ),
    ],
)


def filters_for_type(filters: Sequence[str], osm_type: str) -> str:
    return f"{osm_type}{''.join(filters)};"


def bounds_as_string(bounds: BoundingBox) -> str:
    """Format ``(lat_min, lon_min, lat_max, lon_max)`` as a global bbox setting."""
    lat_min, lon_min, lat_max, lon_max = bounds
    return f"[bbox:{lat_min},{lon_min},{lat_max},{lon_max}]"


def settings_prefix(settings: Sequence[str], bounds: BoundingBox | None = None) -> str:
    bbox = bounds_as_string(bounds) if bounds is not None else ""
    return f"{''.join(settings)}{bbox};"


def build_filter_query(
    conditions: QueryConditions,
    types: Sequence[str],
    settings: Sequence[str] = DEFAULT_SETTINGS,
) -> str:
    """Build a query selecting every type in ``types`` that passes all filters."""
    statements = "\n".join(filters_for_type(conditions.filters, osm_type) for osm_type in types)
    return (
        f"{settings_prefix(settings, conditions.bounds)}\n"
        f"(\n{statements}\n);\n"
        "out meta;\n"
        ">;\n"
        "out meta qt;\n"
    )


def around_point(latitude: float, longitude: float, tolerance_m: float = AROUND_LAT_LON_TOLERANCE) -> str:
    return f"(around:{tolerance_m},{latitude},{longitude})"


def filter_intersection_nodes_around_point(
    around: str,
    output_name: str,
    leave_blocks_open: bool = False,
) -> str:
    """
    Select nodes near a point that at least two highway ways pass through.

    The matching node is written to ``.{output_name}``. With ``leave_blocks_open`` the
    ``foreach`` and ``if`` blocks stay open so another point can be nested inside.
    """
    possible = f"{output_name}Possible"
    one_of = f"oneOf{output_name}Possible"
    ways_of = f"waysOfOneOf{output_name}Possible"
    closing = "" if leave_blocks_open else "}\n}"
    return (
        f"node{around}->.{possible};\n"
        f"foreach.{possible}->.{one_of}\n"
        "{\n"
        f"  way(bn.{one_of}){HIGHWAY_WAY_FILTERS}->.{ways_of};\n"
        f"  if ({ways_of}.count(ways) >= 2)\n"
        "  {\n"
        f"  .{one_of}->.{output_name};\n"
        f"{closing}"
    )


def _output_set(kind: str) -> str:
    if kind == "way":
        return ".ways"
    if kind == "node":
        return ".allnodes"
    raise ValueError(f'type argument must be "way" or "node", got {kind!r}')


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def order_block_streets(intersections: Sequence[Sequence[str]]) -> list[str]:
    """
    Return ``[block street, first cross street, second cross street]``.

    The block street is the one named in both intersections. Raises
    AmbiguousIntersectionError when the intersections share no street.
    """
    if len(intersections) != 2:
        raise AmbiguousIntersectionError(
            f"Expected two intersections, got {len(intersections)}: {list(intersections)}",
            [list(intersections)],
        )
    street_count = Counter(street for intersection in intersections for street in intersection)
    if 2 not in street_count.values():
        raise AmbiguousIntersectionError(
            f"No common block in intersections: {[list(item) for item in intersections]}",
            [list(intersections)],
        )
    ordered = [
        sorted(intersection, key=lambda street: street_count[street], reverse=True)
        for intersection in intersections
    ]
    return [ordered[0][0], ordered[0][-1], ordered[1][-1]]


def build_location_query(kind: str, area_id: str, intersections: Sequence[Sequence[str]]) -> str:
    """
    Query the ways or the nodes of the block between two named intersections.

    The service muddles output when ways and nodes are requested together, so ``kind``
    selects one of them. The returned ways are over-inclusive: they include every way of
    the block street touching either intersection node.
    """
    output = _output_set(kind)
    streets = order_block_streets(intersections)
    way_sets = "\n".join(
        f'way(area:{area_id})[highway][name="{_quote(street)}"][footway!="crossing"]->.w{index};'
        for index, street in enumerate(streets, start=1)
    )
    return (
        f"{way_sets}\n"
        "(node(w.w1)(w.w2);\n"
        " node(w.w1)(w.w3);\n"
        ")->.allnodes;\n"
        "way.w1[highway](bn.allnodes)->.ways;\n"
        f"({output};)->.outputSet;\n"
        ".outputSet out geom;\n"
    )


def build_point_block_query(
    kind: str,
    points: Sequence[tuple[float, float]],
    tolerance_m: float = AROUND_LAT_LON_TOLERANCE,
) -> str:
    """
    Query the ways or nodes between two intersections given as ``(lat, lon)`` points.

    Only ways passing through both intersection nodes are returned.
    """
    output = _output_set(kind)
    if len(points) != 2:
        raise AmbiguousIntersectionError(
            f"Expected two intersection points, got {len(points)}",
            [list(points)],
        )
    node_filters = "\n".join(
        filter_intersection_nodes_around_point(around_point(lat, lon, tolerance_m), f"nodes{index}")
        for index, (lat, lon) in enumerate(points, start=1)
    )
    return (
        f"{node_filters}\n"
        "(.nodes1; .nodes2;)->.allnodes;\n"
        f"way(bn.nodes1){HIGHWAY_WAY_FILTERS}->.w1;\n"
        f"way(bn.nodes2){HIGHWAY_WAY_FILTERS}->.w2;\n"
        "way.w1.w2->.ways;\n"
        f"({output};)->.outputSet;\n"
        ".outputSet out geom;\n"
    )
