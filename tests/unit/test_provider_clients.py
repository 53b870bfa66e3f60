from __future__ import annotations

import pytest

from erfinder.common.errors import UpstreamError
from erfinder.common.geometry import Coordinates
from erfinder.sources.directions import DirectionsClient, parse_route_summary
from erfinder.sources.places import Place, PlaceSearchClient


class FakeResponse:
    def __init__(self, payload):
        self.status_code = 200
        self._payload = payload
        self.headers = {}

    def json(self):
        return self._payload


def _route(code=0, distance=1200, duration=300, fare=None):
    summary = {"distance": distance, "duration": duration, "fare": fare or {"taxi": 5600, "toll": 0}}
    return {"routes": [{"result_code": code, "result_msg": "ok", "summary": summary}]}


def test_parse_route_summary_reads_first_route():
    route = parse_route_summary(_route())
    assert route is not None
    assert route.distance == 1200
    assert route.duration == 300
    assert route.taxi_fare == 5600


def test_parse_route_summary_non_zero_result_code_is_no_route():
    assert parse_route_summary({"routes": [{"result_code": 104, "result_msg": "too close"}]}) is None


def test_parse_route_summary_empty_routes_is_no_route():
    assert parse_route_summary({"routes": []}) is None


def test_parse_route_summary_missing_summary_is_upstream_error():
    with pytest.raises(UpstreamError):
        parse_route_summary({"routes": [{"result_code": 0}]})


def test_directions_client_sends_lon_lat_order(monkeypatch):
    client = DirectionsClient(base_url="https://navi.example", endpoint="/v1/directions", api_key="k")
    calls = []

    def _request(**kwargs):
        calls.append(kwargs)
        return FakeResponse(_route())

    monkeypatch.setattr(client.http.session, "request", _request)
    client.get_route(Coordinates(37.5, 127.0), Coordinates(37.6, 127.1))

    assert calls[0]["params"]["origin"] == "127.0,37.5"
    assert calls[0]["params"]["destination"] == "127.1,37.6"
    assert calls[0]["params"]["priority"] == "RECOMMEND"
    assert calls[0]["timeout"] == (3.0, 3.0)
    assert calls[0]["headers"]["Authorization"] == "KakaoAK k"


def test_directions_client_rejects_unknown_priority():
    with pytest.raises(ValueError):
        DirectionsClient(base_url="https://navi.example", endpoint="/x", api_key="k", priority="SCENIC")


def test_place_is_medical_by_code_or_category_name():
    assert Place("a", "HP8", "", "1", "2", "", "").is_medical()
    assert Place("a", "", "의료,건강 > 병원", "1", "2", "", "").is_medical()
    assert not Place("a", "FD6", "음식점", "1", "2", "", "").is_medical()


def test_place_search_client_parses_documents(monkeypatch):
    client = PlaceSearchClient(base_url="https://dapi.example", endpoint="/search", api_key="k")
    payload = {
        "documents": [
            {
                "place_name": "서울대학교병원",
                "category_group_code": "HP8",
                "category_name": "의료,건강 > 병원 > 종합병원",
                "x": "126.9990",
                "y": "37.5796",
                "address_name": "서울 종로구 연건동 28",
                "road_address_name": "서울 종로구 대학로 101",
            }
        ]
    }
    monkeypatch.setattr(client.http.session, "request", lambda **_kwargs: FakeResponse(payload))

    places = client.search_keyword("서울대학교병원")

    assert len(places) == 1
    assert places[0].lat == "37.5796"
    assert places[0].display_address == "서울 종로구 대학로 101"


def test_place_search_client_without_documents_returns_empty(monkeypatch):
    client = PlaceSearchClient(base_url="https://dapi.example", endpoint="/search", api_key="k")
    monkeypatch.setattr(client.http.session, "request", lambda **_kwargs: FakeResponse({"meta": {}}))

    assert client.search_keyword("없는병원") == []
