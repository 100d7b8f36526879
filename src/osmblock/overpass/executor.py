"""Run an Overpass query against the server pool until one attempt succeeds."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import cast

from osmblock.errors import ExhaustedAttemptsError, NetworkFailure
from osmblock.features import FeatureCollection
from osmblock.overpass.servers import EndpointSelector, default_selector

LOG = logging.getLogger(__name__)

QueryFn = Callable[[str], FeatureCollection]


class _Step(enum.Enum):
    CONTINUE = "continue"
    STOP = "stop"


@dataclass(frozen=True)
class _AttemptOutcome:
    step: _Step
    collection: FeatureCollection | None = None
    failure: NetworkFailure | None = None


class ResilientQueryExecutor:
    """
    Tries a query on successive endpoints, one at a time.

    Overpass servers throttle aggressively, so attempts are strictly sequential and the
    first success ends the run; later endpoints are never contacted. Failures of the most
    recent run are kept on ``failures`` for diagnostics.
    """

    def __init__(
        self,
        selector: EndpointSelector | None = None,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
    ) -> None:
        self.selector = selector if selector is not None else default_selector()
        self.retry_on = retry_on
        self.failures: list[NetworkFailure] = []

    def execute(
        self,
        query_fn: QueryFn,
        attempts: int | None = None,
        name: str = "Overpass query",
    ) -> FeatureCollection:
        """
        Call ``query_fn(endpoint)`` for up to ``attempts`` endpoints.

        ``attempts`` defaults to the number of configured servers. Raises
        ExhaustedAttemptsError with the ordered failures when no attempt succeeds.
        Exceptions outside ``retry_on`` propagate immediately.
        """
        total = attempts if attempts is not None else len(self.selector)
        if total < 1:
            raise ValueError(f"attempts must be at least 1, got {total}")

        failures: list[NetworkFailure] = []
        self.failures = failures
        for attempt in range(total):
            endpoint = self.selector.next()
            LOG.info(
                "Starting %s attempt %d of %d on server %s",
                name,
                attempt + 1,
                total,
                endpoint,
            )
            outcome = self._attempt(query_fn, endpoint, attempt)
            if outcome.step is _Step.STOP:
                return cast(FeatureCollection, outcome.collection)
            if outcome.failure is not None:
                failures.append(outcome.failure)
                LOG.warning(
                    "%s failed on server %s (attempt %d of %d): %s",
                    name,
                    endpoint,
                    attempt + 1,
                    total,
                    outcome.failure.cause,
                )
        raise ExhaustedAttemptsError(failures, name=name)

    def _attempt(self, query_fn: QueryFn, endpoint: str, attempt: int) -> _AttemptOutcome:
        try:
            collection = query_fn(endpoint)
        except self.retry_on as exc:
            return _AttemptOutcome(
                step=_Step.CONTINUE,
                failure=NetworkFailure(endpoint=endpoint, attempt=attempt, cause=exc),
            )
        return _AttemptOutcome(step=_Step.STOP, collection=collection)
