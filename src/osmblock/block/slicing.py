"""Split ways at intersection nodes that fall inside them."""

from __future__ import annotations

from collections.abc import Sequence

from osmblock.features import Feature, hash_point


def split_way_at_points(way: Feature, point_hashes: set[str]) -> list[Feature]:
    """Cut ``way`` at every interior vertex whose hash is in ``point_hashes``."""
    coordinates = way.points
    cut_indices = [
        position
        for position in range(1, len(coordinates) - 1)
        if hash_point(coordinates[position]) in point_hashes
    ]
    if not cut_indices:
        return [way]
    pieces: list[Feature] = []
    start = 0
    for position in [*cut_indices, len(coordinates) - 1]:
        pieces.append(way.with_coordinates(coordinates[start : position + 1]))
        start = position
    return pieces


def split_ways_at_nodes(
    way_features: Sequence[Feature],
    node_features: Sequence[Feature],
) -> list[Feature]:
    """
    Return the ways with every way cut where it passes through a node.

    A block may begin or end in the middle of an OSM way. Cutting there lets the linker
    keep only the part of the way between the two intersections. Pieces keep the id and
    properties of the way they came from.
    """
    point_hashes = {hash_point(node.head) for node in node_features}
    pieces: list[Feature] = []
    for way in way_features:
        pieces.extend(split_way_at_points(way, point_hashes))
    return pieces
