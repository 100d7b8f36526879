"""Command-line entry point for osmblock."""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

import typer
from pydantic import ValidationError

from osmblock import get_version
from osmblock.block.resolve import BlockLocation, BlockResolver
from osmblock.config import AppConfig, load_config
from osmblock.errors import EmptyServerPoolError, OsmBlockError
from osmblock.features import BoundingBox
from osmblock.overpass.executor import ResilientQueryExecutor
from osmblock.overpass.fetch import fetch_osm
from osmblock.overpass.query import QueryConditions
from osmblock.overpass.servers import EndpointSelector
from osmblock.reporting.report import emit_block_report, emit_fetch_report, write_geojson

app = typer.Typer(help="osmblock: resolve street blocks and fetch features from Overpass servers.")

LOG = logging.getLogger(__name__)

_STREET_SEPARATOR = re.compile(r"\s*[&/]\s*")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
    )


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"osmblock {get_version()}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show the installed version and exit.",
    ),
) -> None:
    """Resolve street blocks and fetch features from Overpass servers."""


def parse_intersection(value: str) -> tuple[str, ...]:
    """Split ``"Grand Avenue & Perkins Street"`` into street names; ``"lat,lon"`` stays whole."""
    if re.fullmatch(r"\s*-?\d+(?:\.\d+)?\s*,\s*-?\d+(?:\.\d+)?\s*", value):
        return (value.strip(),)
    streets = tuple(street for street in _STREET_SEPARATOR.split(value.strip()) if street)
    if len(streets) != 2:
        raise typer.BadParameter(
            f"Intersection '{value}' must name two streets (e.g. 'Grand Avenue & Perkins Street') "
            "or be a 'lat,lon' pair.",
        )
    return streets


def parse_bbox(value: str) -> BoundingBox:
    parts = [part for part in re.split(r"[\s,]+", value.strip()) if part]
    if len(parts) != 4:
        raise typer.BadParameter("Bounding box must be 'lat_min,lon_min,lat_max,lon_max'.")
    try:
        lat_min, lon_min, lat_max, lon_max = (float(part) for part in parts)
    except ValueError as exc:
        raise typer.BadParameter(f"Bounding box '{value}' contains a non-numeric value.") from exc
    return lat_min, lon_min, lat_max, lon_max


def _build_config(
    config_file: Path | None,
    servers: list[str] | None,
    timeout: float | None,
    **overrides: object,
) -> AppConfig:
    overrides_raw = {
        "overpass.servers": servers or None,
        "overpass.timeout_s": timeout,
        **overrides,
    }
    try:
        return load_config(config_path=config_file, overrides=overrides_raw)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _build_executor(config: AppConfig) -> ResilientQueryExecutor:
    try:
        return ResilientQueryExecutor(EndpointSelector(config.overpass.servers))
    except EmptyServerPoolError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def block(
    intersection: list[str] = typer.Option(
        ...,
        "--intersection",
        "-i",
        help="Intersection as 'Street A & Street B' or 'lat,lon'. Give exactly two.",
    ),
    area_id: str | None = typer.Option(
        None,
        "--area-id",
        "-a",
        help="OSM relation id of the area holding named intersections (e.g. a city).",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="GeoJSON output path; the collection is written to stdout when omitted.",
    ),
    server: list[str] | None = typer.Option(
        None,
        "--server",
        "-s",
        help="Overpass interpreter URL. Repeat for several; defaults to OSM_SERVERS.",
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="HTTP timeout per request in seconds."),
    tolerance: float | None = typer.Option(
        None,
        "--tolerance",
        help="Search radius in meters around 'lat,lon' intersections.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Optional OmegaConf YAML configuration to load before applying CLI overrides.",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (DEBUG, INFO, ...)."),
) -> None:
    """Resolve the ordered ways of the block between two intersections."""
    _configure_logging(log_level)
    if len(intersection) != 2:
        raise typer.BadParameter("Exactly two --intersection values are required.")
    intersections = tuple(parse_intersection(value) for value in intersection)

    config = _build_config(config_file, server, timeout, **{"block.around_tolerance_m": tolerance})
    resolver = BlockResolver(
        _build_executor(config),
        settings=config.overpass.settings,
        around_tolerance_m=config.block.around_tolerance_m,
        timeout=config.overpass.timeout_s,
        attempts=config.overpass.attempts,
    )
    location = BlockLocation(intersections=intersections, osm_area_id=area_id)

    LOG.info("Resolving block between %s", " and ".join(" & ".join(item) for item in intersections))
    try:
        result = resolver.resolve(location)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except OsmBlockError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    emit_block_report(result)
    write_geojson(result.to_feature_collection(), path=output, stream=sys.stdout)


@app.command()
def fetch(
    bbox: str = typer.Option(
        ...,
        "--bbox",
        "-b",
        help="Bounding box as 'lat_min,lon_min,lat_max,lon_max'.",
    ),
    filters: list[str] | None = typer.Option(
        None,
        "--filter",
        "-f",
        help="Overpass filter such as '[highway]' or '[\"amenity\"=\"cafe\"]'. Repeat to combine.",
    ),
    types: list[str] | None = typer.Option(
        None,
        "--type",
        "-t",
        help="OSM element type to fetch (node, way, relation). Defaults to way.",
    ),
    cell_size_km: float | None = typer.Option(
        None,
        "--cell-size-km",
        help="Split the bounding box into cells of this size and query them one by one.",
    ),
    sleep_ms: int | None = typer.Option(None, "--sleep-ms", help="Pause before each cell query."),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="GeoJSON output path; the collection is written to stdout when omitted.",
    ),
    server: list[str] | None = typer.Option(
        None,
        "--server",
        "-s",
        help="Overpass interpreter URL. Repeat for several; defaults to OSM_SERVERS.",
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="HTTP timeout per request in seconds."),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Optional OmegaConf YAML configuration to load before applying CLI overrides.",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (DEBUG, INFO, ...)."),
) -> None:
    """Fetch every feature matching the filters inside a bounding box."""
    _configure_logging(log_level)
    bounds = parse_bbox(bbox)
    config = _build_config(
        config_file,
        server,
        timeout,
        **{"tiling.cell_size_km": cell_size_km, "tiling.sleep_ms": sleep_ms},
    )
    conditions = QueryConditions(filters=tuple(filters or ()), bounds=bounds)

    try:
        collection = fetch_osm(
            _build_executor(config),
            conditions,
            types or ["way"],
            cell_size_km=config.tiling.cell_size_km,
            sleep_ms=config.tiling.sleep_ms,
            settings=config.overpass.settings,
            timeout=config.overpass.timeout_s,
            attempts=config.overpass.attempts,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except OsmBlockError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    emit_fetch_report(collection)
    write_geojson(collection.to_geojson(), path=output, stream=sys.stdout)


if __name__ == "__main__":  # pragma: no cover
    app()
