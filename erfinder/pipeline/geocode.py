"""Resolve facility names to coordinates through keyword place search."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Protocol

from erfinder.common.constants import (
    DEFAULT_MAX_DISTANCE_KM,
    DEFAULT_MIN_GEOCODE_INTERVAL_SECONDS,
    DEFAULT_NO_DATA_MARKERS,
    DEFAULT_PLAUSIBLE_BBOX,
    MEDICAL_CATEGORY_CODE,
)
from erfinder.common.errors import FetchError
from erfinder.common.geometry import BoundingBox, Coordinates, safe_float
from erfinder.common.http import TokenBucket
from erfinder.common.logging import log_event
from erfinder.common.models import Candidate, GeocodeResult, LocationSource
from erfinder.sources.places import Place

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


class PlaceSearcher(Protocol):
    def search_keyword(self, query: str) -> list[Place]: ...


def clean_name(name: str) -> str:
    return _WHITESPACE_RE.sub(" ", name).strip()


class CoordinateResolver:
    def __init__(
        self,
        places: PlaceSearcher,
        *,
        plausible_bbox: BoundingBox | None = None,
        max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
        no_data_markers: Iterable[str] = DEFAULT_NO_DATA_MARKERS,
        limiter: TokenBucket | None = None,
        category_code: str = MEDICAL_CATEGORY_CODE,
    ) -> None:
        self.places = places
        self.plausible_bbox = plausible_bbox or BoundingBox(**DEFAULT_PLAUSIBLE_BBOX)
        self.max_distance_m = max_distance_km * 1000
        self.no_data_markers = tuple(marker.lower() for marker in no_data_markers)
        self.limiter = limiter or TokenBucket.min_interval(DEFAULT_MIN_GEOCODE_INTERVAL_SECONDS)
        self.category_code = category_code

    def is_no_data_name(self, name: str) -> bool:
        lowered = (name or "").strip().lower()
        if not lowered:
            return True
        return any(marker in lowered for marker in self.no_data_markers)

    def needs_geocoding(self, candidate: Candidate) -> bool:
        return candidate.location_source == LocationSource.FALLBACK and not self.is_no_data_name(candidate.name)

    def _queries(self, name: str, region_hint: str | None) -> list[str]:
        cleaned = clean_name(name)
        strategies = [f"{cleaned} {region_hint}" if region_hint else cleaned]
        if region_hint:
            strategies.append(f"{name} {region_hint}")
        strategies.append(cleaned)
        # An identical query cannot produce a different answer.
        queries: list[str] = []
        for query in strategies:
            if query not in queries:
                queries.append(query)
        return queries

    def _pick(self, places: list[Place]) -> Place | None:
        if not places:
            return None
        for place in places:
            if place.is_medical(self.category_code):
                return place
        return places[0]

    def _search(self, query: str, origin: Coordinates | None) -> GeocodeResult | None:
        self.limiter.acquire()
        try:
            places = self.places.search_keyword(query)
        except FetchError as exc:
            log_event(
                logger,
                f"place search failed for {query!r}: {exc}",
                level=logging.WARNING,
                stage="geocode",
                source="places",
                event="GEOCODE_SEARCH_FAIL",
                status="miss",
                error_code=exc.error_code,
            )
            return None

        place = self._pick(places)
        if place is None:
            return None
        lat, lon = safe_float(place.lat), safe_float(place.lon)
        if lat is None or lon is None:
            return None
        if not self.plausible_bbox.contains(lat, lon):
            return None
        coordinates = Coordinates(lat, lon)
        if origin is not None and origin.distance_to(coordinates) > self.max_distance_m:
            return None
        return GeocodeResult(coordinates=coordinates, resolved_address=place.display_address)

    def resolve(
        self,
        name: str,
        region_hint: str | None = None,
        origin: Coordinates | None = None,
    ) -> GeocodeResult | None:
        if self.is_no_data_name(name):
            return None
        for query in self._queries(name, region_hint):
            result = self._search(query, origin)
            if result is not None:
                return result
        return None

    def resolve_all(
        self,
        candidates: list[Candidate],
        region_hint: str | None = None,
        origin: Coordinates | None = None,
    ) -> list[Candidate]:
        """Geocode fallback-located candidates one at a time, in order."""
        resolved: list[Candidate] = []
        attempted = hits = 0
        for candidate in candidates:
            if not self.needs_geocoding(candidate):
                resolved.append(candidate)
                continue
            attempted += 1
            result = self.resolve(candidate.name, region_hint, origin)
            if result is None:
                log_event(
                    logger,
                    f"geocode miss for {candidate.name}",
                    level=logging.DEBUG,
                    stage="geocode",
                    region=region_hint,
                    event="GEOCODE_MISS",
                    status="fallback",
                    candidate_id=candidate.id,
                )
                resolved.append(candidate)
                continue
            hits += 1
            address = result.resolved_address or candidate.address
            resolved.append(candidate.with_location(result.coordinates, address))

        log_event(
            logger,
            "coordinate resolution finished",
            stage="geocode",
            region=region_hint,
            event="GEOCODE_END",
            status="ok",
            rows_in=attempted,
            rows_out=hits,
        )
        return resolved
