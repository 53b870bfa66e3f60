"""End-to-end facility search: fetch, map, resolve, filter, route, rank."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Mapping, Protocol

from erfinder.common.config_loader import ConfigBundle, resolve_api_key
from erfinder.common.constants import (
    DEFAULT_MAX_DISTANCE_KM,
    DEFAULT_NO_DATA_MARKERS,
    DEFAULT_ROUTE_TOP_K,
    DEFAULT_STALE_AFTER_MINUTES,
)
from erfinder.common.deterministic import stable_sorted
from erfinder.common.errors import PipelineError
from erfinder.common.geometry import BoundingBox, Coordinates
from erfinder.common.http import TokenBucket
from erfinder.common.logging import log_event
from erfinder.common.models import (
    Candidate,
    ResultSource,
    SearchResult,
    SearchWarning,
    WarningAction,
    WarningType,
)
from erfinder.common.time_utils import utc_now
from erfinder.pipeline.geocode import CoordinateResolver
from erfinder.pipeline.mapping import MappingOptions, map_records
from erfinder.pipeline.ranking import rank_candidates
from erfinder.pipeline.regions import RegionTable
from erfinder.pipeline.routes import RouteEnricher
from erfinder.pipeline.snapshot import FileSnapshotStore, SnapshotCache
from erfinder.sources.bed_feed import BedFeedClient
from erfinder.sources.directions import DirectionsClient
from erfinder.sources.places import PlaceSearchClient

logger = logging.getLogger(__name__)

NO_OPERATING_MESSAGE = "운영중인 응급실이 없습니다. 119에 연락하세요."
NO_DATA_MESSAGE = "응급실 정보를 불러올 수 없습니다. 119에 연락하세요."
STALE_MESSAGE = "일부 병원 정보가 {minutes}분 이상 지난 데이터입니다. 실제 상황과 다를 수 있습니다."
SNAPSHOT_MESSAGE = "실시간 정보를 불러오지 못해 {minutes}분 전 데이터를 표시합니다."
SNAPSHOT_OLD_NOTE = " 정보가 오래되었을 수 있습니다."


class BedFeed(Protocol):
    def fetch_beds(self, region_hint: str | None, district: str | None = None) -> list[dict]: ...


class FacilitySearchPipeline:
    def __init__(
        self,
        feed: BedFeed,
        resolver: CoordinateResolver,
        enricher: RouteEnricher,
        cache: SnapshotCache,
        *,
        regions: RegionTable,
        mapping: MappingOptions | None = None,
        max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
        top_k: int = DEFAULT_ROUTE_TOP_K,
        load_more_count: int = DEFAULT_ROUTE_TOP_K,
        stale_after_minutes: float = DEFAULT_STALE_AFTER_MINUTES,
        clock: Callable[[], datetime] = utc_now,
        run_id: str | None = None,
    ) -> None:
        self.feed = feed
        self.resolver = resolver
        self.enricher = enricher
        self.cache = cache
        self.regions = regions
        self.mapping = mapping or MappingOptions()
        self.max_distance_m = max_distance_km * 1000
        self.top_k = top_k
        self.load_more_count = load_more_count
        self.stale_after_minutes = stale_after_minutes
        self.clock = clock
        self.run_id = run_id

    def _log(self, message: str, *, level: int = logging.INFO, **fields) -> None:
        log_event(logger, message, level=level, run_id=self.run_id, **fields)

    def _within_range(self, candidates: list[Candidate], origin: Coordinates, region: str) -> list[Candidate]:
        kept: list[Candidate] = []
        for candidate in candidates:
            distance = candidate.distance_from(origin)
            if distance > self.max_distance_m:
                self._log(
                    f"excluded {candidate.name}: {distance / 1000:.1f} km from origin",
                    stage="filter",
                    region=region,
                    event="CANDIDATE_EXCLUDED",
                    status="dropped",
                    candidate_id=candidate.id,
                )
                continue
            kept.append(candidate)
        return kept

    def _warning_for(self, candidates: list[Candidate], now: datetime) -> SearchWarning | None:
        if not any(candidate.is_operating for candidate in candidates):
            return SearchWarning(WarningType.NO_FACILITIES_FOUND, NO_OPERATING_MESSAGE, WarningAction.CALL_EMERGENCY)
        if any(candidate.is_data_stale(self.stale_after_minutes, now=now) for candidate in candidates):
            return SearchWarning(
                WarningType.DATA_STALE,
                STALE_MESSAGE.format(minutes=int(self.stale_after_minutes)),
                WarningAction.REFRESH_DATA,
            )
        return None

    def _fallback(self, origin: Coordinates, region: str) -> SearchResult:
        cached = self.cache.load(origin)
        if cached is None:
            self._log("no snapshot available", stage="fallback", region=region, event="FALLBACK_MISS", status="empty")
            return SearchResult(
                candidates=[],
                warning=SearchWarning(WarningType.NO_FACILITIES_FOUND, NO_DATA_MESSAGE, WarningAction.CALL_EMERGENCY),
                source=ResultSource.NONE,
                region=region,
            )

        self._log(
            f"serving snapshot aged {cached.age_minutes} min",
            stage="fallback",
            region=region,
            event="FALLBACK_HIT",
            status="stale",
            rows_out=len(cached.candidates),
        )
        nearest = stable_sorted(cached.candidates, key=lambda c: c.distance_from(origin))
        message = SNAPSHOT_MESSAGE.format(minutes=cached.age_minutes)
        if not cached.is_fresh:
            message += SNAPSHOT_OLD_NOTE
        return SearchResult(
            candidates=list(cached.candidates),
            warning=SearchWarning(
                WarningType.DATA_STALE,
                message,
                WarningAction.REFRESH_DATA,
            ),
            source=ResultSource.SNAPSHOT,
            region=cached.region or region,
            nearest=nearest,
            enriched_count=min(self.top_k, len(nearest)),
            snapshot_age_minutes=cached.age_minutes,
            snapshot_is_fresh=cached.is_fresh,
        )

    def search(self, origin: Coordinates) -> SearchResult:
        """Run one search; upstream failures degrade to a warning, never an exception."""
        started = time.monotonic()
        now = self.clock()
        region = self.regions.infer(origin)
        self._log("search start", stage="search", region=region, event="STAGE_START", status="ok")

        try:
            records = self.feed.fetch_beds(region)
        except PipelineError as exc:
            self._log(
                f"feed unavailable, falling back to snapshot: {exc}",
                level=logging.WARNING,
                stage="fetch",
                region=region,
                event="FETCH_FAIL",
                status="fallback",
                error_code=exc.error_code,
            )
            return self._fallback(origin, region)

        candidates = map_records(records, self.mapping, now=now, region=region)
        candidates = self.resolver.resolve_all(candidates, region_hint=region, origin=origin)
        candidates = self._within_range(candidates, origin, region)
        nearest = stable_sorted(candidates, key=lambda c: c.distance_from(origin))
        nearest = self.enricher.enrich_top(origin, nearest, self.top_k)
        ranked = rank_candidates(nearest)

        result = SearchResult(
            candidates=ranked,
            warning=self._warning_for(ranked, now),
            source=ResultSource.LIVE,
            region=region,
            nearest=nearest,
            enriched_count=min(self.top_k, len(nearest)),
        )
        if ranked:
            self.cache.save(ranked, origin, region)

        self._log(
            "search end",
            stage="search",
            region=region,
            event="STAGE_END",
            status="ok",
            rows_in=len(records),
            rows_out=len(ranked),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return result

    def load_more(self, result: SearchResult, origin: Coordinates, count: int | None = None) -> SearchResult:
        """Route the next slice of the distance-ordered list and re-rank."""
        start = result.enriched_count
        if start >= len(result.nearest):
            return result
        step = count if count is not None else self.load_more_count
        nearest = self.enricher.load_more(origin, result.nearest, start, step)
        self._log(
            "load more routes",
            stage="route",
            region=result.region,
            event="LOAD_MORE",
            status="ok",
            rows_in=start,
            rows_out=min(start + step, len(nearest)),
        )
        return replace(
            result,
            candidates=rank_candidates(nearest),
            nearest=nearest,
            enriched_count=min(start + step, len(nearest)),
        )


def build_pipeline(
    bundle: ConfigBundle,
    *,
    environ: Mapping[str, str] | None = None,
    snapshot_path: Path | None = None,
    run_id: str | None = None,
) -> FacilitySearchPipeline:
    settings = bundle.settings
    feed_cfg = settings["feed"]
    places_cfg = settings["places"]
    routing_cfg = settings["routing"]
    search_cfg = settings["search"]
    snapshot_cfg = settings["snapshot"]

    feed = BedFeedClient.from_settings(feed_cfg, resolve_api_key(feed_cfg, environ))
    places = PlaceSearchClient.from_settings(places_cfg, resolve_api_key(places_cfg, environ))
    directions = DirectionsClient.from_settings(routing_cfg, resolve_api_key(routing_cfg, environ))

    resolver = CoordinateResolver(
        places,
        plausible_bbox=BoundingBox.from_dict(search_cfg["plausible_bbox"]),
        max_distance_km=float(search_cfg["max_distance_km"]),
        no_data_markers=search_cfg.get("no_data_markers") or DEFAULT_NO_DATA_MARKERS,
        limiter=TokenBucket.min_interval(float(places_cfg["min_interval_seconds"])),
        category_code=places_cfg.get("category_group_code", places.category_group_code),
    )
    top_k = int(routing_cfg["top_k"])
    cache = SnapshotCache(
        FileSnapshotStore(snapshot_path or Path(snapshot_cfg["path"]), max_bytes=snapshot_cfg.get("max_bytes")),
        max_age_minutes=float(snapshot_cfg["max_age_minutes"]),
        fresh_minutes=float(snapshot_cfg["fresh_minutes"]),
        max_distance_km=float(snapshot_cfg["max_distance_km"]),
    )
    return FacilitySearchPipeline(
        feed,
        resolver,
        RouteEnricher(directions, max_workers=top_k),
        cache,
        regions=RegionTable.from_config(bundle.regions),
        mapping=MappingOptions.from_settings(settings),
        max_distance_km=float(search_cfg["max_distance_km"]),
        top_k=top_k,
        load_more_count=int(routing_cfg.get("load_more_count", top_k)),
        stale_after_minutes=float(search_cfg["stale_after_minutes"]),
        run_id=run_id,
    )
