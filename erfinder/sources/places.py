"""Keyword place-search client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from erfinder.common.constants import MEDICAL_CATEGORY_CODE, MEDICAL_CATEGORY_TERMS
from erfinder.common.http import HttpClient, RetryConfig, TimeoutConfig


@dataclass(frozen=True)
class Place:
    name: str
    category_code: str
    category_name: str
    lat: str
    lon: str
    address: str
    road_address: str

    @property
    def display_address(self) -> str:
        return self.road_address or self.address

    def is_medical(self, category_code: str = MEDICAL_CATEGORY_CODE) -> bool:
        if self.category_code == category_code:
            return True
        return any(term in self.category_name for term in MEDICAL_CATEGORY_TERMS)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Place":
        return cls(
            name=str(document.get("place_name") or ""),
            category_code=str(document.get("category_group_code") or ""),
            category_name=str(document.get("category_name") or ""),
            lat=str(document.get("y") or ""),
            lon=str(document.get("x") or ""),
            address=str(document.get("address_name") or ""),
            road_address=str(document.get("road_address_name") or ""),
        )


class PlaceSearchClient:
    def __init__(
        self,
        *,
        base_url: str,
        endpoint: str,
        api_key: str,
        category_group_code: str = MEDICAL_CATEGORY_CODE,
        page_size: int = 15,
        timeout_seconds: float = 5.0,
        http_client: HttpClient | None = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        self.api_key = api_key
        self.category_group_code = category_group_code
        self.page_size = page_size
        self.timeout = TimeoutConfig(connect=min(5.0, timeout_seconds), read=timeout_seconds)
        # The resolver paces calls itself; a single attempt keeps the quota predictable.
        self.retry = RetryConfig(max_attempts=1, backoff_seconds=0.0)
        self.http = http_client or HttpClient(timeout=self.timeout, retry=self.retry)

    @classmethod
    def from_settings(cls, places_cfg: dict, api_key: str, http_client: HttpClient | None = None) -> "PlaceSearchClient":
        return cls(
            base_url=places_cfg["base_url"],
            endpoint=places_cfg["endpoint"],
            api_key=api_key,
            category_group_code=places_cfg.get("category_group_code", MEDICAL_CATEGORY_CODE),
            page_size=int(places_cfg.get("page_size", 15)),
            timeout_seconds=float(places_cfg["timeout_seconds"]),
            http_client=http_client,
        )

    def search_keyword(self, query: str) -> list[Place]:
        payload = self.http.get_json(
            self.url,
            params={"query": query, "size": self.page_size},
            headers={"Authorization": f"KakaoAK {self.api_key}"},
            timeout=self.timeout,
            retry_config=self.retry,
        )
        documents = payload.get("documents") if isinstance(payload, dict) else None
        if not isinstance(documents, list):
            return []
        return [Place.from_document(doc) for doc in documents if isinstance(doc, dict)]

    def close(self) -> None:
        self.http.close()
