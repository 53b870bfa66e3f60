from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from erfinder.common.errors import PipelineError
from erfinder.common.fs import read_yaml
from erfinder.common.models import RouteInfo
from erfinder.pipeline.geocode import CoordinateResolver
from erfinder.pipeline.mapping import MappingOptions
from erfinder.pipeline.orchestrator import FacilitySearchPipeline
from erfinder.pipeline.regions import RegionTable
from erfinder.pipeline.routes import RouteEnricher
from erfinder.pipeline.snapshot import MemorySnapshotStore, SnapshotCache
from erfinder.sources.places import Place

KST = timezone(timedelta(hours=9))


class Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)

    def feed_stamp(self, minutes_ago: float = 1) -> str:
        return (self.now - timedelta(minutes=minutes_ago)).astimezone(KST).strftime("%Y%m%d%H%M%S")


class FakeFeed:
    def __init__(self, records=None, error: PipelineError | None = None):
        self.records = records or []
        self.error = error
        self.regions: list[str | None] = []

    def fetch_beds(self, region_hint, district=None):
        self.regions.append(region_hint)
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakePlaces:
    def __init__(self, answers=None):
        self.answers = answers or {}
        self.queries: list[str] = []

    def search_keyword(self, query):
        self.queries.append(query)
        return self.answers.get(query, [])


class FakeDirections:
    """Ten metres per second along the great circle."""

    def __init__(self):
        self.calls = 0
        self.lock = threading.Lock()

    def get_route(self, origin, destination):
        with self.lock:
            self.calls += 1
        distance = origin.distance_to(destination)
        return RouteInfo(distance=distance, duration=distance / 10)


class FakeLimiter:
    def acquire(self, tokens: float = 1.0) -> None:
        return None


def make_record(clock: Clock, **overrides):
    record = {
        "hpid": "H1",
        "dutyName": "Test",
        "dutyAddr": "서울특별시 중구",
        "dutyTel3": "02-123-4567",
        "wgs84Lat": "37.5700",
        "wgs84Lon": "126.9800",
        "hvec": "10",
        "hvicc": "0",
        "hvavail": "6",
        "hvctayn": "Y",
        "hvmriayn": "N",
        "dutyEryn": "1",
        "hvidate": clock.feed_stamp(1),
    }
    record.update(overrides)
    return record


class PipelineKit:
    def __init__(self, clock: Clock):
        self.clock = clock
        self.feed = FakeFeed()
        self.places = FakePlaces()
        self.directions = FakeDirections()
        self.store = MemorySnapshotStore()
        self.cache = SnapshotCache(self.store, clock=clock)

    def build(self, **kwargs) -> FacilitySearchPipeline:
        return FacilitySearchPipeline(
            self.feed,
            CoordinateResolver(self.places, limiter=FakeLimiter()),
            RouteEnricher(self.directions, max_workers=kwargs.get("top_k", 10)),
            self.cache,
            regions=RegionTable.from_config(read_yaml_regions()),
            mapping=MappingOptions(available_beds_field="hvavail"),
            clock=self.clock,
            **kwargs,
        )


def read_yaml_regions() -> dict:
    return read_yaml(Path("config/regions.yml"))


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def kit(clock) -> PipelineKit:
    return PipelineKit(clock)


@pytest.fixture
def place():
    def _place(name: str, lat: str, lon: str) -> Place:
        return Place(name, "HP8", "의료,건강 > 병원", lat, lon, f"{name} 주소", f"{name} 도로명")

    return _place


@pytest.fixture
def record(clock):
    def _record(**overrides):
        return make_record(clock, **overrides)

    return _record
