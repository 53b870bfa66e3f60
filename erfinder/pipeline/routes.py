"""Top-K route enrichment on a bounded thread pool."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from erfinder.common.constants import DEFAULT_ROUTE_TOP_K
from erfinder.common.errors import PipelineError
from erfinder.common.geometry import Coordinates
from erfinder.common.logging import log_event
from erfinder.common.models import Candidate, RouteInfo

logger = logging.getLogger(__name__)

SAME_POINT_ROUTE = RouteInfo(distance=0, duration=0, taxi_fare=0, toll_fare=0)


class RouteProvider(Protocol):
    def get_route(self, origin: Coordinates, destination: Coordinates) -> RouteInfo | None: ...


class RouteEnricher:
    def __init__(self, directions: RouteProvider, *, max_workers: int = DEFAULT_ROUTE_TOP_K) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.directions = directions
        self.max_workers = max_workers

    def route_between(self, origin: Coordinates, destination: Coordinates) -> RouteInfo | None:
        if origin.same_point(destination):
            return SAME_POINT_ROUTE
        return self.directions.get_route(origin, destination)

    def _enrich_one(self, origin: Coordinates, candidate: Candidate) -> Candidate:
        try:
            route = self.route_between(origin, candidate.coordinates)
        except PipelineError as exc:
            log_event(
                logger,
                f"route lookup failed: {exc}",
                level=logging.WARNING,
                stage="route",
                source="directions",
                event="ROUTE_FAIL",
                status="skipped",
                error_code=exc.error_code,
                candidate_id=candidate.id,
            )
            return candidate
        except Exception as exc:
            log_event(
                logger,
                f"unexpected route lookup failure: {exc}",
                level=logging.ERROR,
                stage="route",
                source="directions",
                event="ROUTE_FAIL",
                status="skipped",
                error_code="UNEXPECTED_ERROR",
                candidate_id=candidate.id,
            )
            return candidate
        if route is None:
            return candidate
        return candidate.with_route(route.duration, route.distance)

    def _enrich_slice(self, origin: Coordinates, candidates: list[Candidate], start: int, stop: int) -> list[Candidate]:
        out = list(candidates)
        targets = candidates[start:stop]
        if not targets:
            return out

        started = time.monotonic()
        workers = min(self.max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="route") as pool:
            enriched = list(pool.map(lambda c: self._enrich_one(origin, c), targets))
        for offset, candidate in enumerate(enriched):
            out[start + offset] = candidate

        log_event(
            logger,
            "route enrichment finished",
            stage="route",
            source="directions",
            event="ROUTE_END",
            status="ok",
            rows_in=len(targets),
            rows_out=sum(1 for c in enriched if c.route_duration is not None),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return out

    def enrich_top(self, origin: Coordinates, candidates: list[Candidate], k: int = DEFAULT_ROUTE_TOP_K) -> list[Candidate]:
        """Enrich the first ``k`` of a distance-sorted list; the tail is returned as-is."""
        return self._enrich_slice(origin, candidates, 0, max(0, k))

    def load_more(
        self,
        origin: Coordinates,
        candidates: list[Candidate],
        from_index: int,
        count: int = DEFAULT_ROUTE_TOP_K,
    ) -> list[Candidate]:
        start = max(0, from_index)
        return self._enrich_slice(origin, candidates, start, start + max(0, count))
