from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parent.parent / "src"
SRC_STR = str(SRC)
if SRC_STR not in sys.path:
    sys.path.insert(0, SRC_STR)

from osmblock.features import Feature  # noqa: E402
from osmblock.overpass.servers import default_selector  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_servers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OSM_SERVERS", raising=False)
    monkeypatch.delenv("OSM_REQUEST_TIMEOUT", raising=False)
    default_selector.cache_clear()


@pytest.fixture
def make_way() -> Callable[..., Feature]:
    def build(way_id: str, coordinates: Sequence[Sequence[float]], **properties: object) -> Feature:
        return Feature(
            id=way_id,
            geometry_type="LineString",
            coordinates=tuple(tuple(point) for point in coordinates),
            properties=properties,
        )

    return build


@pytest.fixture
def make_node() -> Callable[..., Feature]:
    def build(node_id: str, coordinate: Sequence[float], **properties: object) -> Feature:
        return Feature(
            id=node_id,
            geometry_type="Point",
            coordinates=tuple(coordinate),
            properties=properties,
        )

    return build
