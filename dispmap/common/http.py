"""HTTP client with retries, timeouts, and host-aware rate limiting."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Mapping
from urllib.parse import urlparse

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from dispmap.common.constants import USER_AGENT
from dispmap.common.errors import StageError

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
DEFAULT_RATES_PER_SEC = {
    "listing": 1.0,
    "zip_lookup": 2.0,
    "geocoder": 1.0,
}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 30.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 1.0
    max_wait: float = 20.0


class HttpRequestError(StageError):
    error_code = "HTTP_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryableHttpError(HttpRequestError):
    error_code = "HTTP_RETRYABLE"


class TransportError(RetryableHttpError):
    """Connection, DNS or timeout failure before any HTTP status was received."""

    error_code = "HTTP_TRANSPORT"


class TokenBucket:
    def __init__(self, rate_per_sec: float, capacity: float | None = None) -> None:
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity if capacity is not None else max(rate_per_sec, 1.0)
        self.tokens = self.capacity
        self.updated_at = time.monotonic()
        self.lock = threading.Lock()

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
            time.sleep(wait_for)


class HostRateLimiter:
    def __init__(self, default_rate_per_sec: float) -> None:
        self.default_rate_per_sec = default_rate_per_sec
        self.buckets: dict[str, TokenBucket] = {}
        self.lock = threading.Lock()

    def acquire(self, host: str, tokens: float = 1.0) -> None:
        with self.lock:
            bucket = self.buckets.get(host)
            if bucket is None:
                bucket = TokenBucket(rate_per_sec=self.default_rate_per_sec)
                self.buckets[host] = bucket
        bucket.acquire(tokens=tokens)


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        rates_per_sec: Mapping[str, float] | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()
        rates = dict(DEFAULT_RATES_PER_SEC)
        if rates_per_sec:
            rates.update(rates_per_sec)
        self.limiters = {
            source_type: HostRateLimiter(default_rate_per_sec=rate)
            for source_type, rate in rates.items()
            if rate > 0
        }

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

    def _apply_rate_limit(self, url: str, source_type: str) -> None:
        limiter = self.limiters.get(source_type)
        if limiter is not None:
            limiter.acquire(self._host(url))

    def _headers(self, headers: dict[str, str] | None, accept: str) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": accept}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status: {status}", status_code=status)
        if status >= 400:
            raise HttpRequestError(f"HTTP status: {status}", status_code=status)

    def _send(
        self,
        method: str,
        url: str,
        *,
        source_type: str,
        accept: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> requests.Response:
        req_timeout = timeout or self.timeout
        self._apply_rate_limit(url, source_type)

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                data=data,
                headers=self._headers(headers, accept),
                timeout=(req_timeout.connect, req_timeout.read),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransportError(f"Transport failure for {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise HttpRequestError(f"Request to {url} failed: {exc}") from exc
        self._raise_for_status_or_retry(response)
        return response

    def _with_retries(self, func, retry_config: RetryConfig | None = None):
        cfg = retry_config or self.retry

        @retry(
            stop=stop_after_attempt(cfg.max_attempts),
            wait=wait_exponential_jitter(
                initial=cfg.multiplier,
                max=cfg.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped():
            return func()

        return _wrapped()

    def request_json(
        self,
        method: str,
        url: str,
        *,
        source_type: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> Any:
        def _once() -> Any:
            response = self._send(
                method,
                url,
                source_type=source_type,
                accept="application/json",
                params=params,
                data=data,
                headers=headers,
                timeout=timeout,
            )
            try:
                return response.json()
            except ValueError as exc:
                raise HttpRequestError(
                    f"Invalid JSON payload from {url}", status_code=response.status_code
                ) from exc

        return self._with_retries(_once, retry_config)

    def get_text(
        self,
        url: str,
        *,
        source_type: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> str:
        def _once() -> str:
            response = self._send(
                "GET",
                url,
                source_type=source_type,
                accept="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                params=params,
                headers=headers,
                timeout=timeout,
            )
            if not response.encoding:
                response.encoding = "utf-8"
            return response.text

        return self._with_retries(_once, retry_config)

    def get_json(
        self,
        url: str,
        *,
        source_type: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> Any:
        return self.request_json(
            "GET",
            url,
            source_type=source_type,
            params=params,
            headers=headers,
            timeout=timeout,
            retry_config=retry_config,
        )

    def post_form_json(
        self,
        url: str,
        *,
        source_type: str,
        data: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> Any:
        merged = {"Content-Type": "application/x-www-form-urlencoded"}
        if headers:
            merged.update(headers)
        return self.request_json(
            "POST",
            url,
            source_type=source_type,
            data=data,
            headers=merged,
            timeout=timeout,
            retry_config=retry_config,
        )
