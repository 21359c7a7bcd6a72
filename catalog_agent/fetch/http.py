"""
HTTP Pipeline Module
====================

Shared request/response layer used by every source adapter. Provides
per-source token bucket rate limiting, retries with exponential backoff
and transport timeouts.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from catalog_agent.fetch.errors import ParseError, TransportError
from catalog_agent.fetch.registry import RateLimitConfig

logger = logging.getLogger(__name__)


@dataclass
class HttpRequest:
    """A single outgoing request built by an adapter."""

    url: str
    method: str = "GET"
    params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    content: str | bytes | None = None


@dataclass
class HttpResponse:
    """Body and metadata of a completed request."""

    url: str
    content: bytes
    status_code: int
    mime_type: str
    fetched_at: datetime

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ParseError: If the body is empty or not valid JSON
        """
        if not self.content.strip():
            raise ParseError(f"Empty response from {self.url}")
        try:
            return json.loads(self.content)
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {self.url}: {e}") from e


class TokenBucket:
    """
    Token bucket rate limiter for per-source rate limiting.

    Allows bursting up to burst_limit requests, then enforces
    the steady-state rate of requests_per_second.
    """

    def __init__(self, requests_per_second: float, burst_limit: int) -> None:
        self.requests_per_second = requests_per_second
        self.burst_limit = burst_limit
        self.tokens = float(burst_limit)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """
        Acquire a token, waiting if necessary.

        This method blocks until a token is available.
        """
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_update
            self.last_update = now

            self.tokens = min(
                self.burst_limit, self.tokens + elapsed * self.requests_per_second
            )

            if self.tokens < 1.0:
                wait_time = (1.0 - self.tokens) / self.requests_per_second
                await asyncio.sleep(wait_time)
                self.tokens = 0.0
                self.last_update = time.monotonic()
            else:
                self.tokens -= 1.0


class Downloader:
    """
    HTTP client shared by source adapters.

    Features:
    - Per-source rate limiting with token bucket algorithm
    - Retries with exponential backoff on timeouts, transport
      errors and 5xx responses
    - Injectable httpx transport for tests
    """

    def __init__(
        self,
        user_agent: str = "CatalogAgent/0.1",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff
        self.transport = transport

        self._rate_limiters: dict[str, TokenBucket] = {}

    def _get_rate_limiter(self, source: str, rate_limit: RateLimitConfig) -> TokenBucket:
        """Get or create a rate limiter for a source."""
        if source not in self._rate_limiters:
            self._rate_limiters[source] = TokenBucket(
                requests_per_second=rate_limit.requests_per_second,
                burst_limit=rate_limit.burst_limit,
            )
        return self._rate_limiters[source]

    async def fetch(
        self,
        request: HttpRequest,
        source: str = "",
        rate_limit: RateLimitConfig | None = None,
    ) -> HttpResponse:
        """
        Perform a request with rate limiting and retries.

        Args:
            request: Request to send
            source: Source name, used for rate limiting and error messages
            rate_limit: Rate limit for the source; no limiting when None

        Returns:
            HttpResponse with a 2xx/3xx status

        Raises:
            TransportError: On timeout, network failure or HTTP status >= 400
        """
        if rate_limit is not None:
            await self._get_rate_limiter(source, rate_limit).acquire()

        headers = {"User-Agent": self.user_agent, **request.headers}
        last_error: TransportError | None = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self.transport
                ) as client:
                    response = await client.request(
                        request.method,
                        request.url,
                        params=request.params or None,
                        headers=headers,
                        content=request.content,
                        follow_redirects=True,
                    )
            except httpx.TimeoutException:
                last_error = TransportError(f"Timeout after {self.timeout}s", source)
                logger.warning(
                    f"Timeout fetching {request.url} (attempt {attempt + 1}/{self.max_retries})"
                )
            except httpx.HTTPError as e:
                last_error = TransportError(str(e), source)
                logger.warning(
                    f"HTTP error fetching {request.url}: {e} (attempt {attempt + 1}/{self.max_retries})"
                )
            else:
                if response.status_code < 400:
                    return HttpResponse(
                        url=str(response.url),
                        content=response.content,
                        status_code=response.status_code,
                        mime_type=response.headers.get("content-type", "").split(";")[0].strip(),
                        fetched_at=datetime.now(UTC),
                    )
                last_error = TransportError(
                    f"HTTP {response.status_code} from {request.url}",
                    source,
                    status_code=response.status_code,
                )
                if response.status_code < 500 and response.status_code != 429:
                    break  # Client errors are not retried
                logger.warning(
                    f"HTTP {response.status_code} fetching {request.url} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )

            if attempt < self.max_retries - 1 and self.retry_backoff > 0:
                await asyncio.sleep(self.retry_backoff * 2**attempt)

        raise last_error or TransportError("Unknown error", source)
