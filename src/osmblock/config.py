"""Configuration models and helpers for osmblock."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, cast

from omegaconf import OmegaConf
from pydantic import BaseModel, Field, field_validator

from osmblock.overpass.client import DEFAULT_TIMEOUT_S, TIMEOUT_ENV
from osmblock.overpass.query import AROUND_LAT_LON_TOLERANCE, DEFAULT_SETTINGS
from osmblock.overpass.servers import parse_servers, servers_from_env


class OverpassConfig(BaseModel):
    """Servers and request settings for Overpass queries."""

    servers: List[str] = Field(
        default_factory=servers_from_env,
        description="Interpreter URLs tried in round-robin order (defaults to OSM_SERVERS).",
    )
    timeout_s: float = Field(
        default=None,
        validate_default=True,
        gt=0.0,
        description="HTTP timeout per request (defaults to OSM_REQUEST_TIMEOUT).",
    )
    attempts: Optional[int] = Field(
        default=None, ge=1, description="Attempts per query; defaults to the number of servers."
    )
    settings: List[str] = Field(default_factory=lambda: list(DEFAULT_SETTINGS))

    @field_validator("servers", mode="before")
    @classmethod
    def split_server_string(cls, value: Any) -> Any:
        """Accept the same delimited string OSM_SERVERS uses."""
        if isinstance(value, str):
            return parse_servers(value)
        return value

    @field_validator("timeout_s", mode="before")
    @classmethod
    def timeout_from_env(cls, value: Any) -> Any:
        if value is None:
            return os.environ.get(TIMEOUT_ENV, DEFAULT_TIMEOUT_S)
        return value


class TilingConfig(BaseModel):
    """Grid settings for large bounding box fetches."""

    cell_size_km: Optional[float] = Field(default=None, gt=0.0)
    sleep_ms: int = Field(default=0, ge=0, description="Pause before each cell query.")


class BlockConfig(BaseModel):
    """Settings for resolving blocks from intersections."""

    around_tolerance_m: float = Field(default=AROUND_LAT_LON_TOLERANCE, gt=0.0, le=500.0)


class AppConfig(BaseModel):
    """Top-level configuration for osmblock."""

    overpass: OverpassConfig = Field(default_factory=OverpassConfig)
    tiling: TilingConfig = Field(default_factory=TilingConfig)
    block: BlockConfig = Field(default_factory=BlockConfig)


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> AppConfig:
    """
    Build AppConfig from an optional YAML file and keyword overrides.

    Overrides use dotted keys matching nested configuration fields
    (e.g. ``tiling.cell_size_km=2``); ``None`` values are ignored.
    Fields left unset by both take their model defaults.
    """
    merged = OmegaConf.create()

    if config_path:
        merged = OmegaConf.merge(merged, OmegaConf.load(config_path))

    for dotted_key, value in (overrides or {}).items():
        if value is None:
            continue
        OmegaConf.update(merged, dotted_key, value, merge=False)

    return AppConfig.model_validate(cast(Dict[str, Any], OmegaConf.to_container(merged, resolve=True)))
