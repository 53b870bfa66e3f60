"""Bed-availability feed client."""

from __future__ import annotations

import logging
import time
from typing import Any

from erfinder.common.constants import FEED_SUCCESS_CODE
from erfinder.common.errors import FetchError, UpstreamError
from erfinder.common.http import HttpClient, RetryConfig, TimeoutConfig
from erfinder.common.logging import log_event

logger = logging.getLogger(__name__)


def extract_items(payload: Any) -> list[dict]:
    """Unwrap the feed envelope and normalise ``item`` to a list."""
    if not isinstance(payload, dict):
        raise UpstreamError("Feed response is not a JSON object")
    envelope = payload.get("response", payload)
    if not isinstance(envelope, dict):
        raise UpstreamError("Feed response is missing the result envelope")

    header = envelope.get("header")
    if not isinstance(header, dict) or "resultCode" not in header:
        raise UpstreamError("Feed response is missing the result header")
    result_code = str(header.get("resultCode"))
    if result_code != FEED_SUCCESS_CODE:
        message = header.get("resultMsg") or "unknown upstream error"
        raise UpstreamError(f"Feed returned resultCode={result_code}: {message}")

    body = envelope.get("body")
    if body is None:
        raise UpstreamError("Feed response is missing the result body")
    items = body.get("items") if isinstance(body, dict) else None
    if not isinstance(items, dict):
        return []
    item = items.get("item")
    if item is None:
        return []
    if isinstance(item, dict):
        return [item]
    if isinstance(item, list):
        return [entry for entry in item if isinstance(entry, dict)]
    raise UpstreamError(f"Unexpected item type in feed response: {type(item).__name__}")


class BedFeedClient:
    def __init__(
        self,
        *,
        base_url: str,
        endpoint: str,
        api_key: str,
        num_of_rows: int = 300,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        http_client: HttpClient | None = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        self.api_key = api_key
        self.num_of_rows = num_of_rows
        self.timeout = TimeoutConfig(connect=min(5.0, timeout_seconds), read=timeout_seconds)
        self.retry = RetryConfig(max_attempts=max_attempts, backoff_seconds=backoff_seconds)
        self.http = http_client or HttpClient(timeout=self.timeout, retry=self.retry)

    @classmethod
    def from_settings(cls, feed_cfg: dict, api_key: str, http_client: HttpClient | None = None) -> "BedFeedClient":
        return cls(
            base_url=feed_cfg["base_url"],
            endpoint=feed_cfg["endpoint"],
            api_key=api_key,
            num_of_rows=int(feed_cfg["num_of_rows"]),
            timeout_seconds=float(feed_cfg["timeout_seconds"]),
            max_attempts=int(feed_cfg["max_attempts"]),
            backoff_seconds=float(feed_cfg["backoff_seconds"]),
            http_client=http_client,
        )

    def _params(self, region_hint: str | None, district: str | None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "serviceKey": self.api_key,
            "numOfRows": self.num_of_rows,
            "pageNo": 1,
            "_type": "json",
        }
        if region_hint:
            params["STAGE1"] = region_hint
        if district:
            params["STAGE2"] = district
        return params

    def fetch_beds(self, region_hint: str | None, district: str | None = None) -> list[dict]:
        started = time.monotonic()
        try:
            payload = self.http.get_json(
                self.url,
                params=self._params(region_hint, district),
                timeout=self.timeout,
                retry_config=self.retry,
            )
            items = extract_items(payload)
        except FetchError as exc:
            log_event(
                logger,
                f"bed feed fetch failed: {exc}",
                level=logging.WARNING,
                stage="fetch",
                region=region_hint,
                source="bed_feed",
                event="FETCH_FAIL",
                status="error",
                error_code=exc.error_code,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            raise

        log_event(
            logger,
            "bed feed fetched",
            stage="fetch",
            region=region_hint,
            source="bed_feed",
            event="FETCH_END",
            status="ok",
            rows_out=len(items),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return items

    def close(self) -> None:
        self.http.close()
