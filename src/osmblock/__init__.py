"""Resolve street blocks between two intersections from OpenStreetMap Overpass data."""

from importlib import metadata

PACKAGE_NAME = "osmblock"
SOURCE_VERSION = "0.1.0"


def get_version() -> str:
    """Installed version of osmblock, or the source version in an uninstalled checkout."""
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:  # pragma: no cover - source checkout only
        return SOURCE_VERSION


__all__ = ["PACKAGE_NAME", "get_version"]
