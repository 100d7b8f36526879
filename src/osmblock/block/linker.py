"""Order the way segments of a block and trim them to its two intersections."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from osmblock.errors import AmbiguousIntersectionError, MalformedChainError
from osmblock.features import Feature, hash_point

LOG = logging.getLogger(__name__)


@dataclass
class EndpointBucket:
    """Ways whose first (``head``) or final (``last``) coordinate is at one location."""

    head: list[Feature] = field(default_factory=list)
    last: list[Feature] = field(default_factory=list)

    @property
    def only_head(self) -> bool:
        return bool(self.head) and not self.last

    @property
    def only_last(self) -> bool:
        return bool(self.last) and not self.head


EndpointIndex = dict[str, EndpointBucket]


@dataclass(frozen=True)
class MatchState:
    """
    Which boundary nodes a traversal has reached.

    ``head`` turns true once a way starts at a boundary node. ``last`` can only turn true
    after that, when a way ends at a boundary node; ways reached before entering the
    block therefore never count as its end.
    """

    head: bool = False
    last: bool = False

    def update(self, head_match: bool, last_match: bool) -> MatchState:
        head = self.head or head_match
        return MatchState(head=head, last=(self.last or last_match) and head)


def build_endpoint_index(way_features: Iterable[Feature]) -> EndpointIndex:
    index: EndpointIndex = {}
    for feature in way_features:
        index.setdefault(hash_point(feature.head), EndpointBucket()).head.append(feature)
        index.setdefault(hash_point(feature.last), EndpointBucket()).last.append(feature)
    return index


def _chain_starts(index: EndpointIndex) -> list[Feature]:
    """Return every way starting a chain, in insertion order."""
    return [feature for bucket in index.values() if bucket.only_head for feature in bucket.head]


def _chain_terminals(index: EndpointIndex) -> set[Feature]:
    return {feature for bucket in index.values() if bucket.only_last for feature in bucket.last}


def _next_feature(
    index: EndpointIndex,
    current: Feature,
    visited: set[Feature],
) -> Feature | None:
    """Return the unvisited way whose head is the current way's last point."""
    bucket = index.get(hash_point(current.last))
    if bucket is None:
        return None
    candidates = [feature for feature in bucket.head if feature not in visited]
    if len(candidates) > 1:
        LOG.debug(
            "Way %s branches into %s; following %s",
            current.id,
            [feature.id for feature in candidates],
            candidates[0].id,
        )
    return candidates[0] if candidates else None


def _walk(
    index: EndpointIndex,
    start: Feature,
    terminals: set[Feature],
    node_hashes: set[str],
) -> tuple[MatchState, list[Feature]]:
    """Follow the chain from ``start``, keeping the ways between the boundary nodes."""
    state = MatchState()
    visited: set[Feature] = set()
    linked: list[Feature] = []
    current: Feature | None = start
    while current is not None:
        visited.add(current)
        state = state.update(
            head_match=hash_point(current.head) in node_hashes,
            last_match=hash_point(current.last) in node_hashes,
        )
        if state.head:
            linked.append(current)
        if state.last or current in terminals:
            break
        current = _next_feature(index, current, visited)
    return state, linked


def link_block(
    way_features: Sequence[Feature],
    node_features: Sequence[Feature],
) -> list[Feature]:
    """
    Return the ways between the two intersection nodes, ordered head to last.

    Ways are chained by matching each way's last coordinate to the next way's first
    coordinate. Every chain start is tried in input order and the first chain reaching
    both nodes wins. Ways before the first node or after the second are discarded. Raises
    MalformedChainError when no chain reaches both nodes, and AmbiguousIntersectionError
    unless there are exactly two Point nodes and at least one way.
    """
    if len(node_features) != 2 or any(node.geometry_type != "Point" for node in node_features):
        raise AmbiguousIntersectionError(
            f"Expected exactly two intersection nodes, got {len(node_features)}",
            [node.id for node in node_features],
        )
    if not way_features:
        raise AmbiguousIntersectionError("No ways were found for the block", [])

    index = build_endpoint_index(way_features)
    starts = _chain_starts(index)
    if not starts:
        raise MalformedChainError(way_features, node_features, "ways form a loop with no start")

    terminals = _chain_terminals(index)
    node_hashes = {hash_point(node.head) for node in node_features}
    entered = False
    for start in starts:
        state, linked = _walk(index, start, terminals, node_hashes)
        if state.last:
            LOG.debug("Linked %d of %d way(s) into the block", len(linked), len(way_features))
            return linked
        entered = entered or state.head
        LOG.debug("Chain from %s does not span the block", start.id)

    reason = "ways stop before the second intersection" if entered else "ways never reached the first intersection"
    raise MalformedChainError(way_features, node_features, reason)
