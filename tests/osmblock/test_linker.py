from __future__ import annotations

import logging
from collections.abc import Callable

import pytest
from block_samples import OAKLAND_NODES, OAKLAND_WAYS

from osmblock.block.linker import MatchState, build_endpoint_index, link_block
from osmblock.errors import AmbiguousIntersectionError, MalformedChainError
from osmblock.features import Feature, hash_point

A, B, C, D, E = (0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (3.0, 0.0), (4.0, 0.0)


@pytest.fixture
def abcd_chain(make_way: Callable[..., Feature]) -> list[Feature]:
    return [
        make_way("way/ab", [A, B]),
        make_way("way/bc", [B, C]),
        make_way("way/cd", [C, D]),
    ]


@pytest.fixture
def boundary_nodes(make_node: Callable[..., Feature]) -> list[Feature]:
    return [make_node("node/b", B), make_node("node/c", C)]


def test_match_state_last_requires_head() -> None:
    state = MatchState().update(head_match=False, last_match=True)
    assert state == MatchState(head=False, last=False)
    state = state.update(head_match=True, last_match=False)
    assert state == MatchState(head=True, last=False)
    assert state.update(head_match=False, last_match=True) == MatchState(head=True, last=True)


def test_endpoint_index_groups_by_point(abcd_chain: list[Feature]) -> None:
    index = build_endpoint_index(abcd_chain)
    assert [feature.id for feature in index[hash_point(B)].head] == ["way/bc"]
    assert [feature.id for feature in index[hash_point(B)].last] == ["way/ab"]
    assert index[hash_point(A)].only_head
    assert index[hash_point(D)].only_last


def test_link_block_trims_outside_ways(abcd_chain: list[Feature], boundary_nodes: list[Feature]) -> None:
    assert [way.id for way in link_block(abcd_chain, boundary_nodes)] == ["way/bc"]


def test_link_block_ignores_input_order(abcd_chain: list[Feature], boundary_nodes: list[Feature]) -> None:
    shuffled = [abcd_chain[2], abcd_chain[0], abcd_chain[1]]
    assert [way.id for way in link_block(shuffled, boundary_nodes)] == ["way/bc"]
    assert [way.id for way in link_block(shuffled, boundary_nodes[::-1])] == ["way/bc"]


def test_link_block_keeps_interior_ways(make_way: Callable[..., Feature], make_node: Callable[..., Feature]) -> None:
    ways = [
        make_way("way/cd", [C, D]),
        make_way("way/ab", [A, B]),
        make_way("way/de", [D, E]),
        make_way("way/bc", [B, C]),
    ]
    nodes = [make_node("node/b", B), make_node("node/d", D)]
    assert [way.id for way in link_block(ways, nodes)] == ["way/bc", "way/cd"]


def test_link_block_is_idempotent(abcd_chain: list[Feature], boundary_nodes: list[Feature]) -> None:
    once = link_block(abcd_chain, boundary_nodes)
    assert link_block(once, boundary_nodes) == once


def test_link_block_single_way(make_way: Callable[..., Feature], boundary_nodes: list[Feature]) -> None:
    way = make_way("way/bc", [B, C])
    assert link_block([way], boundary_nodes) == [way]


def test_link_block_raises_on_gap(make_way: Callable[..., Feature], make_node: Callable[..., Feature]) -> None:
    ways = [make_way("way/ab", [A, B]), make_way("way/cd", [C, D])]
    nodes = [make_node("node/a", A), make_node("node/d", D)]
    with pytest.raises(MalformedChainError) as excinfo:
        link_block(ways, nodes)
    assert excinfo.value.way_features == ways
    assert "second intersection" in excinfo.value.reason


def test_link_block_raises_when_nodes_not_on_ways(
    abcd_chain: list[Feature],
    make_node: Callable[..., Feature],
) -> None:
    nodes = [make_node("node/x", (9.0, 9.0)), make_node("node/y", (8.0, 8.0))]
    with pytest.raises(MalformedChainError) as excinfo:
        link_block(abcd_chain, nodes)
    assert "first intersection" in excinfo.value.reason


def test_link_block_raises_on_loop(make_way: Callable[..., Feature], make_node: Callable[..., Feature]) -> None:
    ways = [make_way("way/ab", [A, B]), make_way("way/ba", [B, A])]
    nodes = [make_node("node/a", A), make_node("node/b", B)]
    with pytest.raises(MalformedChainError):
        link_block(ways, nodes)


@pytest.mark.parametrize("count", [0, 1, 3])
def test_link_block_requires_two_nodes(
    abcd_chain: list[Feature],
    make_node: Callable[..., Feature],
    count: int,
) -> None:
    nodes = [make_node(f"node/{index}", B) for index in range(count)]
    with pytest.raises(AmbiguousIntersectionError):
        link_block(abcd_chain, nodes)


def test_link_block_rejects_non_point_nodes(abcd_chain: list[Feature], make_node: Callable[..., Feature]) -> None:
    with pytest.raises(AmbiguousIntersectionError):
        link_block(abcd_chain, [make_node("node/b", B), abcd_chain[0]])


def test_link_block_requires_ways(boundary_nodes: list[Feature]) -> None:
    with pytest.raises(AmbiguousIntersectionError):
        link_block([], boundary_nodes)


def test_link_block_oakland(
    make_way: Callable[..., Feature],
    make_node: Callable[..., Feature],
    caplog: pytest.LogCaptureFixture,
) -> None:
    ways = [make_way(way_id, coordinates) for way_id, coordinates in OAKLAND_WAYS.items()]
    nodes = [make_node(node_id, coordinate) for node_id, coordinate in OAKLAND_NODES.items()]
    with caplog.at_level(logging.DEBUG, logger="osmblock.block.linker"):
        linked = link_block(ways, nodes)
    assert [way.id for way in linked] == ["way/417728789", "way/417728790"]
    assert linked[0].last == linked[1].head
    assert any("Linked 2 of 4" in record.getMessage() for record in caplog.records)


def test_link_block_multi_way_result_is_idempotent(
    make_way: Callable[..., Feature],
    make_node: Callable[..., Feature],
) -> None:
    ways = [
        make_way("way/ab", [A, B]),
        make_way("way/bc", [B, C]),
        make_way("way/cd", [C, D]),
        make_way("way/de", [D, E]),
    ]
    nodes = [make_node("node/b", B), make_node("node/d", D)]
    once = link_block(ways, nodes)
    assert [way.id for way in once] == ["way/bc", "way/cd"]
    assert link_block(once, nodes) == once
    assert link_block(once, nodes[::-1]) == once


def test_link_block_tries_every_chain_start(
    make_way: Callable[..., Feature],
    make_node: Callable[..., Feature],
) -> None:
    side = make_way("way/xc", [(2.0, 5.0), C])
    ways = [side, make_way("way/ab", [A, B]), make_way("way/bc", [B, C])]
    nodes = [make_node("node/b", B), make_node("node/c", C)]
    assert [way.id for way in link_block(ways, nodes)] == ["way/bc"]
