"""HTTP client with retries, hard timeouts, and failure classification."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable
from urllib.parse import urlparse

import requests
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from erfinder.common.constants import USER_AGENT
from erfinder.common.errors import AuthFailureError, RateLimitedError, UnavailableError, UpstreamError
from erfinder.common.logging import log_event

RETRYABLE_STATUS_CODES = {408, 425, 500, 502, 503, 504}
AUTH_FAILURE_STATUS_CODES = {401, 403}
RATE_LIMITED_STATUS_CODE = 429

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 5.0
    read: float = 10.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    max_wait: float = 30.0


class RetryableHttpError(UnavailableError):
    """Transient failure of a single attempt; retried until the budget runs out."""


class TokenBucket:
    def __init__(
        self,
        rate_per_sec: float,
        capacity: float | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity if capacity is not None else rate_per_sec
        self.tokens = self.capacity
        self.updated_at = time.monotonic()
        self.lock = threading.Lock()
        self._sleep = sleep

    @classmethod
    def min_interval(cls, seconds: float, *, sleep: Callable[[float], None] = time.sleep) -> "TokenBucket":
        """Bucket that lets one call through every ``seconds``."""
        return cls(rate_per_sec=1.0 / seconds, capacity=1.0, sleep=sleep)

    def acquire(self, tokens: float = 1.0) -> None:
        while True:
            with self.lock:
                now = time.monotonic()
                elapsed = now - self.updated_at
                self.tokens = min(self.capacity, self.tokens + elapsed * self.rate_per_sec)
                self.updated_at = now
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                deficit = tokens - self.tokens
                wait_for = max(deficit / self.rate_per_sec, 0.01)
            self._sleep(wait_for)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait_for = retry_state.next_action.sleep if retry_state.next_action else None
    log_event(
        logger,
        f"retrying after transient failure: {exc}",
        level=logging.WARNING,
        event="HTTP_RETRY",
        status="retry",
        attempt=retry_state.attempt_number,
        duration_ms=int(wait_for * 1000) if wait_for is not None else None,
        error_code=getattr(exc, "error_code", None),
    )


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _host(self, url: str) -> str:
        return urlparse(url).netloc

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status(self, response: requests.Response, url: str) -> None:
        status = response.status_code
        host = self._host(url)
        if status == RATE_LIMITED_STATUS_CODE:
            headers = getattr(response, "headers", None) or {}
            retry_after = headers.get("Retry-After")
            try:
                retry_after_seconds = float(retry_after) if retry_after is not None else None
            except ValueError:
                retry_after_seconds = None
            raise RateLimitedError(f"Rate limited by {host}", retry_after=retry_after_seconds)
        if status in AUTH_FAILURE_STATUS_CODES:
            raise AuthFailureError(f"Authentication rejected by {host} (HTTP {status})")
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status from {host}: {status}")
        if status >= 400:
            raise UpstreamError(f"HTTP status from {host}: {status}")

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Any:
        req_timeout = timeout or self.timeout
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                headers=self._headers(headers),
                timeout=(req_timeout.connect, req_timeout.read),
            )
        except requests.Timeout as exc:
            raise RetryableHttpError(f"Timed out calling {self._host(url)}") from exc
        except requests.RequestException as exc:
            raise RetryableHttpError(f"Transport error calling {self._host(url)}: {exc}") from exc

        self._raise_for_status(response, url)

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Invalid JSON payload from {self._host(url)}") from exc

    def request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> Any:
        policy = retry_config or self.retry

        @retry(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(multiplier=policy.backoff_seconds, max=policy.max_wait),
            retry=retry_if_exception_type(RetryableHttpError),
            before_sleep=_log_retry,
            reraise=True,
        )
        def _wrapped() -> Any:
            return self._request_json(method, url, params=params, headers=headers, timeout=timeout)

        try:
            return _wrapped()
        except RetryableHttpError as exc:
            raise UnavailableError(
                f"{self._host(url)} unavailable after {policy.max_attempts} attempt(s): {exc}"
            ) from exc

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> Any:
        return self.request_json(
            "GET",
            url,
            params=params,
            headers=headers,
            timeout=timeout,
            retry_config=retry_config,
        )
