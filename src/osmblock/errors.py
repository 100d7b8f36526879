"""Error taxonomy for querying Overpass and linking block geometry."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from osmblock.features import Feature


class OsmBlockError(RuntimeError):
    """Base class for failures surfaced by osmblock."""


class EmptyServerPoolError(OsmBlockError):
    """Raised when no Overpass servers are configured."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or (
                "No servers configured. Define environment variable OSM_SERVERS with "
                "comma-separated server urls with their api path. "
                "E.g. https://lz4.overpass-api.de/api/interpreter"
            ),
        )


class OverpassResponseError(OsmBlockError):
    """Raised when a single Overpass request returns an unusable response."""

    def __init__(self, endpoint: str, status: int | None, detail: str) -> None:
        self.endpoint = endpoint
        self.status = status
        self.detail = detail
        status_text = f"HTTP {status}" if status is not None else "invalid response"
        super().__init__(f"Overpass server {endpoint} answered with {status_text}: {detail}")


@dataclass(frozen=True)
class NetworkFailure:
    """One failed attempt against one endpoint."""

    endpoint: str
    attempt: int
    cause: BaseException

    def describe(self) -> str:
        return f"attempt {self.attempt + 1} on {self.endpoint}: {self.cause}"


class ExhaustedAttemptsError(OsmBlockError):
    """Raised when every configured attempt failed."""

    def __init__(self, failures: Sequence[NetworkFailure], name: str = "Overpass query") -> None:
        self.failures = list(failures)
        self.name = name
        lines = "\n  ".join(failure.describe() for failure in self.failures) or "(no attempts made)"
        super().__init__(f"{name} failed after {len(self.failures)} attempt(s):\n  {lines}")

    @property
    def endpoints(self) -> list[str]:
        return [failure.endpoint for failure in self.failures]


class MalformedChainError(OsmBlockError):
    """Raised when way features do not form a continuous path between the two nodes."""

    def __init__(
        self,
        way_features: Iterable[Feature],
        node_features: Iterable[Feature],
        reason: str = "ways do not connect the two intersection nodes",
    ) -> None:
        self.way_features = list(way_features)
        self.node_features = list(node_features)
        self.reason = reason
        way_ids = ", ".join(feature.id for feature in self.way_features) or "none"
        node_ids = ", ".join(feature.id for feature in self.node_features) or "none"
        super().__init__(
            f"Unable to link block: {reason} (ways: {way_ids}; nodes: {node_ids})",
        )


class AmbiguousIntersectionError(OsmBlockError):
    """Raised when a query does not yield exactly two intersection nodes and some ways."""

    def __init__(self, message: str, locations: Iterable[Any] | None = None) -> None:
        self.locations = list(locations or [])
        super().__init__(message)
