from __future__ import annotations

from datetime import datetime, timezone

import pytest

from erfinder.common.errors import CandidateValidationError
from erfinder.common.geometry import Coordinates
from erfinder.common.models import LocationSource
from erfinder.pipeline.mapping import (
    MappingOptions,
    format_phone,
    map_record,
    map_records,
    parse_trauma_level,
    sanitize_phone,
)

NOW = datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)


def _record(**overrides):
    record = {
        "hpid": "A1100010",
        "dutyName": "서울대학교병원",
        "dutyAddr": "서울특별시 종로구 대학로 101",
        "dutyTel1": "02-2072-2114",
        "dutyTel3": "02-2072-2473",
        "wgs84Lat": "37.5796",
        "wgs84Lon": "126.9990",
        "hvec": "20",
        "hvicc": "10",
        "hvoc": "3",
        "hvctayn": "Y",
        "hvmriayn": "N",
        "dutyEmcls": "A",
        "dutyEryn": "1",
        "hvidate": "20260302115500",
    }
    record.update(overrides)
    return record


def test_map_record_reads_feed_fields():
    candidate = map_record(_record(), MappingOptions(), now=NOW)

    assert candidate.id == "A1100010"
    assert candidate.coordinates == Coordinates(37.5796, 126.999)
    assert candidate.location_source == LocationSource.FEED
    assert candidate.total_beds == 30
    assert candidate.has_ct is True
    assert candidate.has_mri is False
    assert candidate.has_surgery is True
    assert candidate.trauma_level == 1
    assert candidate.is_operating is True
    assert candidate.phone_number == "02-2072-2114"
    assert candidate.emergency_phone_number == "02-2072-2473"


def test_available_beds_are_estimated_and_flagged_without_reported_field():
    candidate = map_record(_record(hvec="7", hvicc="0"), MappingOptions(), now=NOW)
    assert candidate.available_beds == 2
    assert candidate.beds_estimated is True


def test_reported_available_field_is_used_and_clamped():
    options = MappingOptions(available_beds_field="hvgc")
    reported = map_record(_record(hvgc="4"), options, now=NOW)
    clamped = map_record(_record(hvec="2", hvicc="0", hvgc="9"), options, now=NOW)

    assert (reported.available_beds, reported.beds_estimated) == (4, False)
    assert (clamped.available_beds, clamped.total_beds) == (2, 2)


def test_negative_bed_counts_are_treated_as_zero():
    candidate = map_record(_record(hvec="-3", hvicc="-1"), MappingOptions(), now=NOW)
    assert (candidate.available_beds, candidate.total_beds) == (0, 0)


@pytest.mark.parametrize(("lat", "lon"), [("0", "0"), (None, None), ("x", "y"), ("45.0", "127.0")])
def test_bad_coordinates_use_fallback_location(lat, lon):
    candidate = map_record(_record(wgs84Lat=lat, wgs84Lon=lon), MappingOptions(), now=NOW)
    assert candidate.coordinates == Coordinates(37.5663, 126.9779)
    assert candidate.location_source == LocationSource.FALLBACK


def test_feed_timestamp_is_converted_from_local_time():
    candidate = map_record(_record(hvidate="2026-03-02 11:55:00"), MappingOptions(), now=NOW)
    assert candidate.last_updated == datetime(2026, 3, 2, 2, 55, tzinfo=timezone.utc)


def test_unparseable_timestamp_defaults_to_now():
    assert map_record(_record(hvidate="soon"), MappingOptions(), now=NOW).last_updated == NOW


def test_missing_operating_flag_defaults_to_operating():
    record = _record()
    del record["dutyEryn"]
    assert map_record(record, MappingOptions(), now=NOW).is_operating is True
    assert map_record(_record(dutyEryn="2"), MappingOptions(), now=NOW).is_operating is False


@pytest.mark.parametrize("missing", ["hpid", "dutyName"])
def test_missing_required_field_is_rejected(missing):
    with pytest.raises(CandidateValidationError):
        map_record(_record(**{missing: ""}), MappingOptions(), now=NOW)


def test_map_records_drops_invalid_records():
    candidates = map_records([_record(), _record(hpid=None), _record(hpid="B2")], MappingOptions(), now=NOW)
    assert [c.id for c in candidates] == ["A1100010", "B2"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("02-2072-2114", "02-2072-2114"),
        ("(02) 760 2114", "02-760-2114"),
        ("0317871114", "031-787-1114"),
        ("01012345678", "010-1234-5678"),
        ("1588-1511", "1588-1511"),
        ("0", None),
        ("", None),
        ("없음", None),
        (None, None),
    ],
)
def test_sanitize_phone(raw, expected):
    assert sanitize_phone(raw) == expected


def test_format_phone_returns_unknown_shapes_unchanged():
    assert format_phone("123456789") == "123456789"


@pytest.mark.parametrize(("raw", "expected"), [("A", 1), ("B2", 2), ("c", 3), ("G099", None), (None, None)])
def test_parse_trauma_level(raw, expected):
    assert parse_trauma_level(raw) == expected
