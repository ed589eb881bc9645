"""
Async HTTP client wrapper for external API requests.
Includes retry logic, timeout management, rate limiting and metrics collection.
"""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import SOURCE_LATENCY, SOURCE_REQUESTS
from shared.utils.rate_limiter import TokenBucket

logger = get_logger(__name__)

MAX_RETRY_AFTER_S = 10.0


def retry_after_seconds(value: Optional[str], default: float = 2.0) -> float:
    """Seconds to wait from a Retry-After header: delta-seconds or an HTTP date."""
    if not value:
        return default
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class ApiHTTPClient:
    """
    Async HTTP client tailored for rate-limited third-party APIs.
    Handles timeouts, retries, and records metrics per request. When a
    rate limiter is given, every attempt (retries included) takes a token.
    """

    def __init__(
        self,
        source_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: TokenBucket | None = None,
    ) -> None:
        settings = get_settings()
        self._source = source_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.source_request_timeout_s
        self._max_retries = max(1, max_retries or settings.source_max_retries)
        self._default_headers = headers or {}
        self._transport = transport
        self._rate_limiter = rate_limiter
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """
        Perform a GET request with retry, metrics, and structured logging.

        Args:
            path: API path relative to base_url; also used as the metrics endpoint label.
            params: Query parameters.

        Returns:
            httpx.Response

        Raises:
            httpx.HTTPStatusError: On non-retryable HTTP errors or when retries are exhausted.
            httpx.TransportError: If all retries fail at the transport level.
        """
        if not self._client:
            raise RuntimeError("ApiHTTPClient not started. Call start() first.")

        endpoint = path.strip("/")
        last_exc: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            if self._rate_limiter is not None:
                await self._rate_limiter.wait_until_available()
            start_time = time.perf_counter()
            status = "unknown"

            try:
                resp = await self._client.get(path, params=params)
                status = str(resp.status_code)

                if resp.status_code == 429:
                    logger.warning("source_rate_limited", source=self._source, path=path, attempt=attempt)
                    if attempt < self._max_retries:
                        retry_after = retry_after_seconds(resp.headers.get("Retry-After"))
                        await asyncio.sleep(min(retry_after, MAX_RETRY_AFTER_S))
                        continue

                elif resp.status_code >= 500 and attempt < self._max_retries:
                    logger.warning(
                        "source_server_error",
                        source=self._source,
                        path=path,
                        status=resp.status_code,
                        attempt=attempt,
                    )
                    await asyncio.sleep(1.0 * attempt)
                    continue

                resp.raise_for_status()

                logger.debug(
                    "source_request_success",
                    source=self._source,
                    path=path,
                    status=resp.status_code,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return resp

            except httpx.TimeoutException as exc:
                status = "timeout"
                last_exc = exc
                logger.warning("source_timeout", source=self._source, path=path, attempt=attempt)
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)

            except httpx.HTTPStatusError as exc:
                logger.error(
                    "source_http_error",
                    source=self._source,
                    path=path,
                    status=exc.response.status_code,
                    attempt=attempt,
                )
                raise

            except httpx.TransportError as exc:
                status = "error"
                last_exc = exc
                logger.error(
                    "source_request_error",
                    source=self._source,
                    path=path,
                    error=str(exc),
                    attempt=attempt,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)

            finally:
                SOURCE_REQUESTS.labels(endpoint=endpoint, status=status).inc()
                SOURCE_LATENCY.labels(endpoint=endpoint).observe(time.perf_counter() - start_time)

        # All retries exhausted
        if last_exc:
            raise last_exc
        raise RuntimeError(f"Request to {path} failed after {self._max_retries} attempts")
