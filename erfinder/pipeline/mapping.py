"""Map raw bed-feed records onto validated candidates."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from erfinder.common.constants import DEFAULT_ESTIMATED_AVAILABLE_RATIO, DEFAULT_FALLBACK_LOCATION, DEFAULT_PLAUSIBLE_BBOX
from erfinder.common.errors import CandidateValidationError
from erfinder.common.geometry import BoundingBox, Coordinates, parse_point
from erfinder.common.logging import log_event
from erfinder.common.models import Candidate, LocationSource
from erfinder.common.time_utils import parse_feed_timestamp, utc_now

logger = logging.getLogger(__name__)

MISSING_ADDRESS = "주소 정보 없음"
MISSING_PHONE = "전화번호 없음"
TRAUMA_PREFIXES = {"A": 1, "B": 2, "C": 3}

_PHONE_STRIP_RE = re.compile(r"[\s\-()]")
_PHONE_VALID_RE = re.compile(r"^(0\d{6,10}|1[5-9]\d{6})$")
_DIGITS_RE = re.compile(r"^\d{7,}$")


@dataclass(frozen=True)
class MappingOptions:
    fallback_location: Coordinates = Coordinates(*DEFAULT_FALLBACK_LOCATION)
    plausible_bbox: BoundingBox = BoundingBox(**DEFAULT_PLAUSIBLE_BBOX)
    available_beds_field: str | None = None
    estimated_available_ratio: float = DEFAULT_ESTIMATED_AVAILABLE_RATIO
    utc_offset_hours: float = 9

    @classmethod
    def from_settings(cls, settings: dict) -> "MappingOptions":
        feed_cfg = settings["feed"]
        search_cfg = settings["search"]
        return cls(
            fallback_location=Coordinates.from_dict(search_cfg["fallback_location"]),
            plausible_bbox=BoundingBox.from_dict(search_cfg["plausible_bbox"]),
            available_beds_field=feed_cfg.get("available_beds_field"),
            estimated_available_ratio=float(
                feed_cfg.get("estimated_available_ratio", DEFAULT_ESTIMATED_AVAILABLE_RATIO)
            ),
            utc_offset_hours=float(feed_cfg.get("utc_offset_hours", 9)),
        )


def format_phone(digits: str) -> str:
    length = len(digits)
    if digits.startswith("02"):
        if length == 9:
            return f"{digits[:2]}-{digits[2:5]}-{digits[5:]}"
        if length == 10:
            return f"{digits[:2]}-{digits[2:6]}-{digits[6:]}"
    elif digits.startswith("0"):
        if length == 10:
            return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
        if length == 11:
            return f"{digits[:3]}-{digits[3:7]}-{digits[7:]}"
    elif digits.startswith("1") and length == 8:
        return f"{digits[:4]}-{digits[4:]}"
    return digits


def sanitize_phone(value: Any) -> str | None:
    """Strip punctuation, validate a Korean number and re-hyphenate it."""
    if not isinstance(value, str):
        return None
    cleaned = _PHONE_STRIP_RE.sub("", value)
    if cleaned in ("", "0"):
        return None
    if _PHONE_VALID_RE.match(cleaned) or _DIGITS_RE.match(cleaned):
        return format_phone(cleaned)
    return None


def parse_trauma_level(value: Any) -> int | None:
    if not value:
        return None
    return TRAUMA_PREFIXES.get(str(value).strip()[:1].upper())


def _non_negative_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return 0
    return max(0, parsed)


def parse_bed_counts(record: dict[str, Any], options: MappingOptions) -> tuple[int, int, bool]:
    """Return ``(available, total, estimated)``."""
    total = _non_negative_int(record.get("hvec")) + _non_negative_int(record.get("hvicc"))
    field = options.available_beds_field
    if field and record.get(field) is not None:
        return min(_non_negative_int(record.get(field)), total), total, False
    # The feed carries no per-facility available count; estimate and flag it.
    available = max(0, math.floor(total * options.estimated_available_ratio))
    return available, total, True


def map_record(record: dict[str, Any], options: MappingOptions, *, now: datetime | None = None) -> Candidate:
    facility_id = str(record.get("hpid") or "").strip()
    name = str(record.get("dutyName") or "").strip()
    if not facility_id:
        raise CandidateValidationError("Record is missing hpid")
    if not name:
        raise CandidateValidationError(f"Record {facility_id} is missing dutyName")

    point = parse_point(record.get("wgs84Lat"), record.get("wgs84Lon"), options.plausible_bbox)
    location_source = LocationSource.FEED
    if point is None:
        point = options.fallback_location
        location_source = LocationSource.FALLBACK

    available, total, estimated = parse_bed_counts(record, options)
    main_phone = sanitize_phone(record.get("dutyTel1"))
    emergency_phone = sanitize_phone(record.get("dutyTel3"))
    last_updated = parse_feed_timestamp(record.get("hvidate"), utc_offset_hours=options.utc_offset_hours)

    return Candidate(
        id=facility_id,
        name=name,
        coordinates=point,
        address=str(record.get("dutyAddr") or "").strip() or MISSING_ADDRESS,
        phone_number=main_phone or emergency_phone or MISSING_PHONE,
        emergency_phone_number=emergency_phone,
        available_beds=available,
        total_beds=total,
        has_ct=record.get("hvctayn") == "Y",
        has_mri=record.get("hvmriayn") == "Y",
        has_surgery=_non_negative_int(record.get("hvoc")) > 0,
        trauma_level=parse_trauma_level(record.get("dutyEmcls")),
        is_operating=str(record.get("dutyEryn", "1")).strip() == "1",
        last_updated=last_updated or now or utc_now(),
        location_source=location_source,
        beds_estimated=estimated,
    )


def map_records(
    records: Iterable[dict[str, Any]],
    options: MappingOptions,
    *,
    now: datetime | None = None,
    region: str | None = None,
) -> list[Candidate]:
    reference = now or utc_now()
    candidates: list[Candidate] = []
    rows_in = 0
    for record in records:
        rows_in += 1
        try:
            candidates.append(map_record(record, options, now=reference))
        except CandidateValidationError as exc:
            log_event(
                logger,
                f"record rejected: {exc}",
                level=logging.WARNING,
                stage="map",
                region=region,
                event="RECORD_REJECTED",
                status="dropped",
                error_code=exc.error_code,
                candidate_id=record.get("hpid") if isinstance(record, dict) else None,
            )

    log_event(
        logger,
        "records mapped",
        stage="map",
        region=region,
        event="MAP_END",
        status="ok",
        rows_in=rows_in,
        rows_out=len(candidates),
    )
    return candidates
