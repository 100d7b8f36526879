"""GeoJSON feature records shared by the query and block-linking layers."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry

Coordinate = tuple[float, ...]  # (lon, lat) as in GeoJSON
BoundingBox = tuple[float, float, float, float]  # (lat_min, lon_min, lat_max, lon_max)

GEOMETRY_TYPES = frozenset({"Point", "LineString"})


def hash_point(point: Sequence[float]) -> str:
    """Return a stable string key for a coordinate pair."""
    return ":".join(repr(float(value)) for value in point)


@dataclass(frozen=True)
class Feature:
    """A Point or LineString with an OSM identifier such as ``way/5089101``."""

    id: str
    geometry_type: str
    coordinates: tuple[Any, ...]
    properties: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if self.geometry_type not in GEOMETRY_TYPES:
            raise ValueError(
                f"Unsupported geometry type '{self.geometry_type}' for feature {self.id}.",
            )
        if self.geometry_type == "Point":
            coordinates: tuple[Any, ...] = tuple(float(value) for value in self.coordinates)
        else:
            coordinates = tuple(
                tuple(float(value) for value in point) for point in self.coordinates
            )
            if len(coordinates) < 2:
                raise ValueError(f"LineString {self.id} needs at least two coordinates.")
        object.__setattr__(self, "coordinates", coordinates)

    @property
    def kind(self) -> str:
        """OSM element type prefix (``way``, ``node``, ``relation``)."""
        return self.id.partition("/")[0]

    @property
    def points(self) -> tuple[Coordinate, ...]:
        if self.geometry_type == "Point":
            return (self.coordinates,)
        return self.coordinates

    @property
    def head(self) -> Coordinate:
        return self.points[0]

    @property
    def last(self) -> Coordinate:
        return self.points[-1]

    @property
    def geometry(self) -> dict[str, Any]:
        if self.geometry_type == "Point":
            return {"type": "Point", "coordinates": list(self.coordinates)}
        return {"type": "LineString", "coordinates": [list(point) for point in self.coordinates]}

    @property
    def __geo_interface__(self) -> dict[str, Any]:
        return self.to_geojson()

    def to_shape(self) -> BaseGeometry:
        return shape(self.geometry)

    def with_coordinates(self, coordinates: Iterable[Any]) -> Feature:
        return replace(self, coordinates=tuple(coordinates))

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": self.geometry,
            "properties": dict(self.properties),
        }

    @classmethod
    def from_geojson(cls, data: Mapping[str, Any]) -> Feature:
        geometry = data.get("geometry") or {}
        feature_id = data.get("id") or (data.get("properties") or {}).get("id")
        if not feature_id:
            raise ValueError("GeoJSON feature is missing an 'id'.")
        return cls(
            id=str(feature_id),
            geometry_type=geometry.get("type", ""),
            coordinates=tuple(geometry.get("coordinates") or ()),
            properties=dict(data.get("properties") or {}),
        )


def dedupe_features(features: Iterable[Feature]) -> list[Feature]:
    """Drop features whose id was already seen; the first occurrence wins."""
    seen: set[str] = set()
    unique: list[Feature] = []
    for feature in features:
        if feature.id in seen:
            continue
        seen.add(feature.id)
        unique.append(feature)
    return unique


class FeatureCollection(Sequence[Feature]):
    """Ordered sequence of features, as returned by an Overpass query."""

    def __init__(self, features: Iterable[Feature] = ()) -> None:
        self._features: list[Feature] = list(features)

    def __getitem__(self, index):  # type: ignore[no-untyped-def]
        if isinstance(index, slice):
            return FeatureCollection(self._features[index])
        return self._features[index]

    def __len__(self) -> int:
        return len(self._features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self._features)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FeatureCollection):
            return self._features == other._features
        return NotImplemented

    def __repr__(self) -> str:
        return f"FeatureCollection({len(self._features)} features)"

    @property
    def ids(self) -> list[str]:
        return [feature.id for feature in self._features]

    def of_kind(self, kind: str) -> list[Feature]:
        return [feature for feature in self._features if feature.kind == kind]

    def dedupe_by_id(self) -> FeatureCollection:
        return FeatureCollection(dedupe_features(self._features))

    @classmethod
    def concat(cls, collections: Iterable[Iterable[Feature]]) -> FeatureCollection:
        merged: list[Feature] = []
        for collection in collections:
            merged.extend(collection)
        return cls(merged)

    def to_geojson(self, **extra: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "FeatureCollection"}
        payload.update(extra)
        payload["features"] = [feature.to_geojson() for feature in self._features]
        return payload

    @classmethod
    def from_geojson(cls, data: Mapping[str, Any]) -> FeatureCollection:
        return cls(Feature.from_geojson(item) for item in data.get("features", []))
