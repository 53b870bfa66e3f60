from __future__ import annotations

from datetime import timedelta

import pytest

from erfinder.common.errors import CandidateValidationError
from erfinder.common.geometry import BoundingBox, Coordinates, haversine_m, parse_point
from erfinder.common.models import AvailabilityStatus, Candidate, LocationSource, ResultSource, SearchResult


def test_haversine_seoul_to_busan_is_about_325_km():
    distance = haversine_m(37.5665, 126.978, 35.1796, 129.0756)
    assert 320_000 < distance < 330_000


def test_coordinates_reject_out_of_range_latitude():
    with pytest.raises(CandidateValidationError):
        Coordinates(91.0, 127.0)


def test_same_point_ignores_accuracy():
    assert Coordinates(37.5, 127.0, accuracy=5).same_point(Coordinates(37.5, 127.0))
    assert not Coordinates(37.5, 127.0).same_point(Coordinates(37.5, 127.0001))


@pytest.mark.parametrize(
    ("lat", "lon"),
    [(None, "127.0"), ("abc", "127.0"), ("0", "127.0"), (0, 0), ("40.5", "127.0"), ("37.5", "140.0")],
)
def test_parse_point_rejects_missing_zero_or_implausible(lat, lon):
    bbox = BoundingBox(33.0, 39.0, 124.0, 132.0)
    assert parse_point(lat, lon, bbox) is None


def test_parse_point_accepts_numeric_strings():
    point = parse_point("37.5796", "126.999", BoundingBox(33.0, 39.0, 124.0, 132.0))
    assert point == Coordinates(37.5796, 126.999)


def test_candidate_rejects_available_above_total(make_candidate):
    with pytest.raises(CandidateValidationError):
        make_candidate(available_beds=5, total_beds=4)


def test_candidate_rejects_negative_beds(make_candidate):
    with pytest.raises(CandidateValidationError):
        make_candidate(available_beds=-1)


def test_candidate_rejects_blank_name(make_candidate):
    with pytest.raises(CandidateValidationError):
        make_candidate(name="  ")


def test_zero_total_beds_is_unknown(make_candidate):
    assert make_candidate(available_beds=0, total_beds=0).availability_status == AvailabilityStatus.UNKNOWN


def test_available_beds_without_total_is_rejected(make_candidate):
    with pytest.raises(CandidateValidationError):
        make_candidate(available_beds=3, total_beds=0)


def test_not_operating_is_unknown(make_candidate):
    assert make_candidate(is_operating=False).availability_status == AvailabilityStatus.UNKNOWN


def test_availability_thresholds(make_candidate):
    assert make_candidate(available_beds=0, total_beds=10).availability_status == AvailabilityStatus.FULL
    # 2 of 10 free is 80% occupancy.
    assert make_candidate(available_beds=2, total_beds=10).availability_status == AvailabilityStatus.LIMITED
    assert make_candidate(available_beds=4, total_beds=100).availability_status == AvailabilityStatus.LIMITED
    assert make_candidate(available_beds=10, total_beds=20).availability_status == AvailabilityStatus.AVAILABLE


def test_route_helpers(make_candidate):
    candidate = make_candidate().with_route(duration=301, distance=2500)
    assert candidate.route_duration_minutes == 6
    assert candidate.route_distance_km == 2.5


def test_callable_phone_prefers_emergency_line(make_candidate):
    assert make_candidate(emergency_phone_number="02-760-2114").callable_phone_number == "02-760-2114"
    assert make_candidate().callable_phone_number == "02-123-4567"


def test_is_data_stale(make_candidate, now):
    candidate = make_candidate(last_updated=now - timedelta(minutes=6))
    assert candidate.is_data_stale(5, now=now)
    assert not candidate.is_data_stale(10, now=now)


def test_with_location_marks_geocoded(make_candidate):
    candidate = make_candidate(location_source=LocationSource.FALLBACK)
    moved = candidate.with_location(Coordinates(37.58, 127.0), "서울 종로구")
    assert moved.location_source == LocationSource.GEOCODED
    assert candidate.location_source == LocationSource.FALLBACK


def test_candidate_dict_round_trip_preserves_flags(make_candidate):
    original = make_candidate(beds_estimated=True, trauma_level=2).with_route(600, 5000)
    assert Candidate.from_dict(original.to_dict()) == original


def test_search_result_to_dict_omits_nearest(make_candidate):
    result = SearchResult(candidates=[make_candidate()], warning=None, source=ResultSource.LIVE, region="서울특별시")
    payload = result.to_dict()
    assert payload["source"] == "live"
    assert payload["warning"] is None
    assert len(payload["candidates"]) == 1
    assert "nearest" not in payload
    assert payload["snapshot_is_fresh"] is None
