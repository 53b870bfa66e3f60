"""Driving-directions client; returns route summaries only."""

from __future__ import annotations

import logging
from typing import Any

from erfinder.common.constants import ROUTE_PRIORITIES
from erfinder.common.errors import UpstreamError
from erfinder.common.geometry import Coordinates
from erfinder.common.http import HttpClient, RetryConfig, TimeoutConfig
from erfinder.common.logging import log_event
from erfinder.common.models import RouteInfo

logger = logging.getLogger(__name__)


def parse_route_summary(payload: Any) -> RouteInfo | None:
    """Return the first route's summary, or None when no route exists."""
    if not isinstance(payload, dict):
        raise UpstreamError("Directions response is not a JSON object")
    routes = payload.get("routes")
    if not routes:
        return None
    first = routes[0]
    if not isinstance(first, dict):
        raise UpstreamError("Directions response has a malformed route entry")
    if first.get("result_code") != 0:
        log_event(
            logger,
            f"no route: {first.get('result_msg')} (code {first.get('result_code')})",
            level=logging.DEBUG,
            source="directions",
            event="NO_ROUTE",
            status="empty",
        )
        return None

    summary = first.get("summary")
    if not isinstance(summary, dict):
        raise UpstreamError("Directions response is missing the route summary")
    distance = summary.get("distance")
    duration = summary.get("duration")
    if not isinstance(distance, (int, float)) or not isinstance(duration, (int, float)):
        raise UpstreamError("Directions summary has non-numeric distance or duration")

    fare = summary.get("fare") or {}
    return RouteInfo(
        distance=float(distance),
        duration=float(duration),
        taxi_fare=int(fare.get("taxi") or 0),
        toll_fare=int(fare.get("toll") or 0),
    )


class DirectionsClient:
    def __init__(
        self,
        *,
        base_url: str,
        endpoint: str,
        api_key: str,
        priority: str = "RECOMMEND",
        timeout_seconds: float = 3.0,
        max_attempts: int = 2,
        http_client: HttpClient | None = None,
    ) -> None:
        if priority not in ROUTE_PRIORITIES:
            raise ValueError(f"Unsupported route priority: {priority}")
        self.url = f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        self.api_key = api_key
        self.priority = priority
        self.timeout = TimeoutConfig(connect=timeout_seconds, read=timeout_seconds)
        self.retry = RetryConfig(max_attempts=max_attempts, backoff_seconds=0.5, max_wait=1.0)
        self.http = http_client or HttpClient(timeout=self.timeout, retry=self.retry)

    @classmethod
    def from_settings(cls, routing_cfg: dict, api_key: str, http_client: HttpClient | None = None) -> "DirectionsClient":
        return cls(
            base_url=routing_cfg["base_url"],
            endpoint=routing_cfg["endpoint"],
            api_key=api_key,
            priority=routing_cfg.get("priority", "RECOMMEND"),
            timeout_seconds=float(routing_cfg["timeout_seconds"]),
            max_attempts=int(routing_cfg["max_attempts"]),
            http_client=http_client,
        )

    def get_route(self, origin: Coordinates, destination: Coordinates, priority: str | None = None) -> RouteInfo | None:
        payload = self.http.get_json(
            self.url,
            params={
                "origin": f"{origin.lon},{origin.lat}",
                "destination": f"{destination.lon},{destination.lat}",
                "priority": priority or self.priority,
            },
            headers={"Authorization": f"KakaoAK {self.api_key}"},
            timeout=self.timeout,
            retry_config=self.retry,
        )
        return parse_route_summary(payload)

    def close(self) -> None:
        self.http.close()
