"""HTTP access to a single Overpass interpreter and JSON-to-feature conversion."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any

import requests

from osmblock.errors import OverpassResponseError
from osmblock.features import Feature, FeatureCollection, dedupe_features

LOG = logging.getLogger(__name__)

TIMEOUT_ENV = "OSM_REQUEST_TIMEOUT"
DEFAULT_TIMEOUT_S = 180.0


def default_timeout() -> float:
    raw = os.environ.get(TIMEOUT_ENV)
    if raw is None:
        return DEFAULT_TIMEOUT_S
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{TIMEOUT_ENV} must be a number of seconds, got {raw!r}") from exc


def run_query(
    endpoint: str,
    query: str,
    timeout: float | None = None,
) -> FeatureCollection:
    """
    POST ``query`` to ``endpoint`` and return the response as features.

    Raises OverpassResponseError for non-200 answers (429 throttling and 504 timeouts are
    common) and for 200 answers carrying a runtime-error remark. Transport errors from
    requests propagate unchanged.
    """
    LOG.debug("Requesting OSM query on %s:\n%s", endpoint, query)
    response = requests.post(
        endpoint,
        data={"data": query},
        timeout=timeout if timeout is not None else default_timeout(),
    )
    if response.status_code != 200:
        raise OverpassResponseError(endpoint, response.status_code, response.text[:200])
    try:
        payload = response.json()
    except ValueError as exc:
        raise OverpassResponseError(endpoint, response.status_code, "response is not JSON") from exc

    remark = payload.get("remark")
    if remark and "error" in remark.lower():
        raise OverpassResponseError(endpoint, response.status_code, remark)
    return elements_to_features(payload.get("elements", []))


def elements_to_features(elements: Iterable[Mapping[str, Any]]) -> FeatureCollection:
    """
    Convert Overpass JSON elements into Point and LineString features.

    Ways take their coordinates from inline ``geometry`` (``out geom``) or from the
    referenced nodes (``out body`` followed by ``>``). Untagged nodes that only serve as
    way vertices are dropped. Relations are skipped.
    """
    elements = list(elements)
    node_coords: dict[int, tuple[float, float]] = {}
    referenced: set[int] = set()
    for element in elements:
        if element.get("type") == "node" and "lat" in element and "lon" in element:
            node_coords[element["id"]] = (float(element["lon"]), float(element["lat"]))
        elif element.get("type") == "way":
            referenced.update(element.get("nodes", []))

    features: list[Feature] = []
    for element in elements:
        element_type = element.get("type")
        properties = dict(element.get("tags") or {})
        if element_type == "node":
            coords = node_coords.get(element["id"])
            if coords is None:
                continue
            if element["id"] in referenced and not properties:
                continue
            features.append(
                Feature(
                    id=f"node/{element['id']}",
                    geometry_type="Point",
                    coordinates=coords,
                    properties=properties,
                ),
            )
        elif element_type == "way":
            line = _way_coordinates(element, node_coords)
            if len(line) < 2:
                LOG.debug("Skipping way %s without usable geometry", element.get("id"))
                continue
            features.append(
                Feature(
                    id=f"way/{element['id']}",
                    geometry_type="LineString",
                    coordinates=tuple(line),
                    properties=properties,
                ),
            )
        else:
            LOG.debug("Skipping unsupported element %s/%s", element_type, element.get("id"))
    return FeatureCollection(dedupe_features(features))


def _way_coordinates(
    element: Mapping[str, Any],
    node_coords: Mapping[int, tuple[float, float]],
) -> list[tuple[float, float]]:
    geometry = element.get("geometry")
    if geometry:
        return [
            (float(point["lon"]), float(point["lat"]))
            for point in geometry
            if point is not None
        ]
    return [node_coords[node_id] for node_id in element.get("nodes", []) if node_id in node_coords]
