"""Round-robin selection over the configured Overpass servers."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from functools import lru_cache

from osmblock.errors import EmptyServerPoolError

LOG = logging.getLogger(__name__)

SERVERS_ENV = "OSM_SERVERS"
_SEPARATORS = re.compile(r"\s*[,;\s]\s*")


def parse_servers(value: str | None) -> list[str]:
    """Split a delimited server list (commas, semicolons or whitespace)."""
    if not value:
        return []
    return [server for server in _SEPARATORS.split(value.strip()) if server]


def servers_from_env() -> list[str]:
    return parse_servers(os.environ.get(SERVERS_ENV))


class EndpointSelector:
    """
    Cycles through a fixed list of endpoints.

    The cursor is plain shared state: callers drive it from one sequence of attempts at a
    time and must add their own locking if resolutions run in parallel.
    """

    def __init__(self, endpoints: Iterable[str]) -> None:
        self._endpoints: tuple[str, ...] = tuple(endpoints)
        if not self._endpoints:
            raise EmptyServerPoolError()
        self._counter = 0

    @classmethod
    def from_env(cls) -> EndpointSelector:
        return cls(servers_from_env())

    @property
    def endpoints(self) -> tuple[str, ...]:
        return self._endpoints

    def __len__(self) -> int:
        return len(self._endpoints)

    def next(self) -> str:
        endpoint = self._endpoints[self._counter % len(self._endpoints)]
        self._counter += 1
        return endpoint


@lru_cache(maxsize=1)
def default_selector() -> EndpointSelector:
    """Process-wide selector built from ``OSM_SERVERS`` on first use."""
    selector = EndpointSelector.from_env()
    LOG.debug("Configured %d Overpass server(s) from %s", len(selector), SERVERS_ENV)
    return selector
