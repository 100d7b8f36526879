"""Result presentation utilities."""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.table import Table
from rich.text import Text

from osmblock.block.resolve import BlockResult
from osmblock.features import Coordinate, FeatureCollection
from osmblock.utils import line_length_m

LOG = logging.getLogger(__name__)


def emit_block_report(result: BlockResult, console: Console | None = None) -> None:
    """Print the nodes and ordered ways of a resolved block."""
    console = console or Console(stderr=True)
    table = Table(title="Block", expand=False)
    table.add_column("#", justify="right")
    table.add_column("Feature")
    table.add_column("Name")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Length (m)", justify="right")

    for index, way in enumerate(result.ways, start=1):
        table.add_row(
            str(index),
            way.id,
            str(way.properties.get("name", "")),
            _format_point(way.head),
            _format_point(way.last),
            f"{line_length_m(way.points):.1f}",
        )
    console.print(table)

    nodes = ", ".join(f"{node.id} ({_format_point(node.head)})" for node in result.nodes)
    console.print(Text(f"Intersections: {nodes}", style="cyan"))
    console.print(
        Text(
            f"{len(result.ways)} way(s), {result.length_m:.1f} m in total.",
            style="bold green",
        ),
    )


def emit_fetch_report(collection: FeatureCollection, console: Console | None = None) -> None:
    """Print feature counts per kind for a fetch."""
    console = console or Console(stderr=True)
    if not len(collection):
        console.print(Text("No features found.", style="yellow"))
        return
    counts = Counter(feature.kind for feature in collection)
    table = Table(title="Fetched features", expand=False)
    table.add_column("Kind")
    table.add_column("Count", justify="right")
    for kind, count in sorted(counts.items()):
        table.add_row(kind, str(count))
    console.print(table)


def write_geojson(geojson: dict[str, Any], path: Path | None = None, stream: TextIO | None = None) -> None:
    """Write a GeoJSON mapping to ``path`` or, without a path, to ``stream``."""
    if path is None:
        if stream is None:
            raise ValueError("Either path or stream is required.")
        json.dump(geojson, stream, indent=2)
        stream.write("\n")
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(geojson, handle, indent=2)
    LOG.info("GeoJSON exported to %s", path)


def _format_point(point: Coordinate) -> str:
    lon, lat = point[0], point[1]
    return f"{lat:.6f}, {lon:.6f}"
