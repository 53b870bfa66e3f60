"""Data models used across the pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from erfinder.common.errors import CandidateValidationError
from erfinder.common.geometry import Coordinates
from erfinder.common.time_utils import parse_iso, utc_now

TRAUMA_LEVELS = (1, 2, 3)
LIMITED_OCCUPANCY_RATE = 0.8
LIMITED_BED_COUNT = 4


class AvailabilityStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    LIMITED = "LIMITED"
    FULL = "FULL"
    UNKNOWN = "UNKNOWN"


class LocationSource(str, Enum):
    FEED = "feed"
    GEOCODED = "geocoded"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Candidate:
    """One emergency facility under evaluation for a search.

    Instances are never mutated; the ``with_*`` helpers return a validated copy.
    """

    id: str
    name: str
    coordinates: Coordinates
    address: str
    phone_number: str
    emergency_phone_number: str | None
    available_beds: int
    total_beds: int
    has_ct: bool
    has_mri: bool
    has_surgery: bool
    trauma_level: int | None
    is_operating: bool
    last_updated: datetime
    route_duration: float | None = None
    route_distance: float | None = None
    location_source: LocationSource = LocationSource.FEED
    beds_estimated: bool = False

    def __post_init__(self) -> None:
        if not self.id or not str(self.id).strip():
            raise CandidateValidationError("Candidate id cannot be empty")
        if not self.name or not str(self.name).strip():
            raise CandidateValidationError("Candidate name cannot be empty")
        if self.available_beds < 0:
            raise CandidateValidationError(f"Available beds cannot be negative: {self.available_beds}")
        if self.total_beds < 0:
            raise CandidateValidationError(f"Total beds cannot be negative: {self.total_beds}")
        if self.available_beds > self.total_beds:
            raise CandidateValidationError(
                f"Available beds ({self.available_beds}) cannot exceed total beds ({self.total_beds})"
            )
        if self.trauma_level is not None and self.trauma_level not in TRAUMA_LEVELS:
            raise CandidateValidationError(f"Unsupported trauma level: {self.trauma_level}")

    @property
    def availability_status(self) -> AvailabilityStatus:
        if not self.is_operating or self.total_beds == 0:
            return AvailabilityStatus.UNKNOWN
        if self.available_beds == 0:
            return AvailabilityStatus.FULL
        occupancy_rate = 1 - self.available_beds / self.total_beds
        if occupancy_rate >= LIMITED_OCCUPANCY_RATE or self.available_beds <= LIMITED_BED_COUNT:
            return AvailabilityStatus.LIMITED
        return AvailabilityStatus.AVAILABLE

    @property
    def availability_rate(self) -> float:
        if self.total_beds == 0:
            return 0.0
        return self.available_beds / self.total_beds

    @property
    def callable_phone_number(self) -> str:
        return self.emergency_phone_number or self.phone_number

    @property
    def route_duration_minutes(self) -> int | None:
        if self.route_duration is None:
            return None
        return math.ceil(self.route_duration / 60)

    @property
    def route_distance_km(self) -> float | None:
        if self.route_distance is None:
            return None
        return self.route_distance / 1000

    def distance_from(self, location: Coordinates) -> float:
        return location.distance_to(self.coordinates)

    def is_data_stale(self, threshold_minutes: float = 5, *, now: datetime | None = None) -> bool:
        reference = now or utc_now()
        return reference - self.last_updated > timedelta(minutes=threshold_minutes)

    def with_route(self, duration: float, distance: float) -> "Candidate":
        return replace(self, route_duration=duration, route_distance=distance)

    def with_location(self, coordinates: Coordinates, address: str) -> "Candidate":
        return replace(self, coordinates=coordinates, address=address, location_source=LocationSource.GEOCODED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "coordinates": self.coordinates.to_dict(),
            "address": self.address,
            "phone_number": self.phone_number,
            "emergency_phone_number": self.emergency_phone_number,
            "available_beds": self.available_beds,
            "total_beds": self.total_beds,
            "has_ct": self.has_ct,
            "has_mri": self.has_mri,
            "has_surgery": self.has_surgery,
            "trauma_level": self.trauma_level,
            "is_operating": self.is_operating,
            "last_updated": self.last_updated.isoformat(),
            "route_duration": self.route_duration,
            "route_distance": self.route_distance,
            "location_source": self.location_source.value,
            "beds_estimated": self.beds_estimated,
            "availability_status": self.availability_status.value,
            "callable_phone_number": self.callable_phone_number,
            "route_duration_minutes": self.route_duration_minutes,
            "route_distance_km": self.route_distance_km,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Candidate":
        return cls(
            id=payload["id"],
            name=payload["name"],
            coordinates=Coordinates.from_dict(payload["coordinates"]),
            address=payload.get("address", ""),
            phone_number=payload.get("phone_number", ""),
            emergency_phone_number=payload.get("emergency_phone_number"),
            available_beds=int(payload["available_beds"]),
            total_beds=int(payload["total_beds"]),
            has_ct=bool(payload.get("has_ct", False)),
            has_mri=bool(payload.get("has_mri", False)),
            has_surgery=bool(payload.get("has_surgery", False)),
            trauma_level=payload.get("trauma_level"),
            is_operating=bool(payload.get("is_operating", False)),
            last_updated=parse_iso(payload["last_updated"]),
            route_duration=payload.get("route_duration"),
            route_distance=payload.get("route_distance"),
            location_source=LocationSource(payload.get("location_source", LocationSource.FEED.value)),
            beds_estimated=bool(payload.get("beds_estimated", False)),
        )


@dataclass(frozen=True)
class GeocodeResult:
    coordinates: Coordinates
    resolved_address: str


@dataclass(frozen=True)
class RouteInfo:
    distance: float
    duration: float
    taxi_fare: int = 0
    toll_fare: int = 0


class WarningType(str, Enum):
    NO_FACILITIES_FOUND = "NO_FACILITIES_FOUND"
    DATA_STALE = "DATA_STALE"


class WarningAction(str, Enum):
    CALL_EMERGENCY = "CALL_EMERGENCY"
    REFRESH_DATA = "REFRESH_DATA"


@dataclass(frozen=True)
class SearchWarning:
    type: WarningType
    message: str
    action: WarningAction | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "action": self.action.value if self.action else None,
        }


class ResultSource(str, Enum):
    LIVE = "live"
    SNAPSHOT = "snapshot"
    NONE = "none"


@dataclass(frozen=True)
class SearchResult:
    candidates: list[Candidate]
    warning: SearchWarning | None
    source: ResultSource
    region: str
    nearest: list[Candidate] = field(default_factory=list)
    enriched_count: int = 0
    snapshot_age_minutes: int | None = None
    snapshot_is_fresh: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "region": self.region,
            "warning": self.warning.to_dict() if self.warning else None,
            "enriched_count": self.enriched_count,
            "snapshot_age_minutes": self.snapshot_age_minutes,
            "snapshot_is_fresh": self.snapshot_is_fresh,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
        }
