"""Coordinate value type and great-circle helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from erfinder.common.errors import CandidateValidationError

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float
    accuracy: float | None = None

    def __post_init__(self) -> None:
        if not -90 <= self.lat <= 90:
            raise CandidateValidationError(f"Invalid latitude: {self.lat}. Must be between -90 and 90.")
        if not -180 <= self.lon <= 180:
            raise CandidateValidationError(f"Invalid longitude: {self.lon}. Must be between -180 and 180.")
        if self.accuracy is not None and self.accuracy < 0:
            raise CandidateValidationError(f"Invalid accuracy: {self.accuracy}. Must be non-negative.")

    def distance_to(self, other: "Coordinates") -> float:
        return haversine_m(self.lat, self.lon, other.lat, other.lon)

    def same_point(self, other: "Coordinates") -> bool:
        return self.lat == other.lat and self.lon == other.lon

    def to_dict(self) -> dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "accuracy": self.accuracy}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Coordinates":
        return cls(lat=float(payload["lat"]), lon=float(payload["lon"]), accuracy=payload.get("accuracy"))


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "BoundingBox":
        return cls(
            min_lat=float(payload["min_lat"]),
            max_lat=float(payload["max_lat"]),
            min_lon=float(payload["min_lon"]),
            max_lon=float(payload["max_lon"]),
        )


def safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def parse_point(lat: Any, lon: Any, bbox: BoundingBox | None = None) -> Coordinates | None:
    """Parse a feed lat/lon pair; zero, non-numeric or implausible points are None."""
    parsed_lat = safe_float(lat)
    parsed_lon = safe_float(lon)
    if parsed_lat is None or parsed_lon is None:
        return None
    if parsed_lat == 0 or parsed_lon == 0:
        return None
    if not (-90 <= parsed_lat <= 90 and -180 <= parsed_lon <= 180):
        return None
    if bbox is not None and not bbox.contains(parsed_lat, parsed_lon):
        return None
    return Coordinates(parsed_lat, parsed_lon)
