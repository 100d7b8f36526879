from __future__ import annotations

import pytest
from shapely.geometry import LineString

from osmblock.features import Feature, FeatureCollection, dedupe_features, hash_point


def test_feature_normalizes_coordinates() -> None:
    way = Feature(id="way/1", geometry_type="LineString", coordinates=[[1, 2], [3, 4]])
    assert way.coordinates == ((1.0, 2.0), (3.0, 4.0))
    assert way.head == (1.0, 2.0)
    assert way.last == (3.0, 4.0)
    assert way.kind == "way"
    assert isinstance(way.to_shape(), LineString)


def test_feature_rejects_bad_geometry() -> None:
    with pytest.raises(ValueError):
        Feature(id="way/1", geometry_type="LineString", coordinates=[[1, 2]])
    with pytest.raises(ValueError):
        Feature(id="relation/1", geometry_type="Polygon", coordinates=[])


def test_hash_point_matches_int_and_float() -> None:
    assert hash_point((1, 2)) == hash_point((1.0, 2.0))
    assert hash_point((1.0, 2.0)) != hash_point((2.0, 1.0))


def test_feature_equality_ignores_properties() -> None:
    first = Feature(id="node/1", geometry_type="Point", coordinates=(1, 2), properties={"a": 1})
    second = Feature(id="node/1", geometry_type="Point", coordinates=(1, 2))
    assert first == second
    assert hash(first) == hash(second)


def test_geojson_round_trip_keeps_properties() -> None:
    way = Feature(id="way/9", geometry_type="LineString", coordinates=[[1, 2], [3, 4]], properties={"name": "A"})
    data = FeatureCollection([way]).to_geojson(generator="test")
    assert data["generator"] == "test"
    restored = FeatureCollection.from_geojson(data)
    assert restored == FeatureCollection([way])
    assert restored[0].properties == {"name": "A"}


def test_from_geojson_requires_id() -> None:
    with pytest.raises(ValueError):
        Feature.from_geojson({"type": "Feature", "geometry": {"type": "Point", "coordinates": [1, 2]}})


def test_dedupe_keeps_first_occurrence() -> None:
    first = Feature(id="node/1", geometry_type="Point", coordinates=(1, 2))
    later = Feature(id="node/1", geometry_type="Point", coordinates=(5, 6))
    other = Feature(id="node/2", geometry_type="Point", coordinates=(3, 4))
    assert dedupe_features([first, other, later]) == [first, other]
    collection = FeatureCollection.concat([[first], [later, other]])
    assert collection.dedupe_by_id().ids == ["node/1", "node/2"]
    assert collection.of_kind("node") == [first, later, other]
    assert isinstance(collection[:1], FeatureCollection)
