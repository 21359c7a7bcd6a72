"""Tests for the shared HTTP pipeline."""

import asyncio
import time
from datetime import UTC, datetime

import httpx
import pytest

from catalog_agent.fetch.errors import ParseError, TransportError
from catalog_agent.fetch.http import Downloader, HttpRequest, HttpResponse, TokenBucket
from catalog_agent.fetch.registry import RateLimitConfig


def make_response(content: bytes, status_code: int = 200) -> HttpResponse:
    return HttpResponse(
        url="https://example.com/api",
        content=content,
        status_code=status_code,
        mime_type="application/json",
        fetched_at=datetime.now(UTC),
    )


class TestTokenBucket:
    """Tests for the TokenBucket rate limiter."""

    @pytest.mark.asyncio
    async def test_initial_burst(self) -> None:
        """Test that initial requests use burst tokens."""
        bucket = TokenBucket(requests_per_second=1.0, burst_limit=5)

        start = time.monotonic()
        for _ in range(5):
            await bucket.acquire()
        elapsed = time.monotonic() - start

        assert elapsed < 0.1

    @pytest.mark.asyncio
    async def test_rate_limiting(self) -> None:
        """Test that requests are rate limited after burst."""
        bucket = TokenBucket(requests_per_second=10.0, burst_limit=1)
        await bucket.acquire()

        start = time.monotonic()
        await bucket.acquire()
        elapsed = time.monotonic() - start

        # Should take approximately 0.1s (1/10 second)
        assert 0.05 < elapsed < 0.3

    @pytest.mark.asyncio
    async def test_token_refill(self) -> None:
        """Test that tokens refill over time."""
        bucket = TokenBucket(requests_per_second=10.0, burst_limit=2)
        await bucket.acquire()
        await bucket.acquire()

        await asyncio.sleep(0.2)

        start = time.monotonic()
        await bucket.acquire()
        assert time.monotonic() - start < 0.05


class TestHttpResponse:
    """Tests for HttpResponse."""

    def test_json(self) -> None:
        """Test decoding a JSON body."""
        assert make_response(b'{"a": 1}').json() == {"a": 1}

    def test_empty_body(self) -> None:
        """Test that an empty body is a parse error."""
        with pytest.raises(ParseError):
            make_response(b"  ").json()

    def test_invalid_json(self) -> None:
        """Test that a malformed body is a parse error."""
        with pytest.raises(ParseError):
            make_response(b"<html>").json()


class TestDownloader:
    """Tests for the Downloader."""

    @pytest.mark.asyncio
    async def test_fetch_success(self) -> None:
        """Test a successful request with params and headers."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        downloader = Downloader(user_agent="TestAgent/1.0", transport=httpx.MockTransport(handler))
        response = await downloader.fetch(
            HttpRequest(url="https://example.com/api", params={"q": "dune"}, headers={"X-Key": "k"}),
            source="test",
        )

        assert response.status_code == 200
        assert response.mime_type == "application/json"
        assert response.json() == {"ok": True}
        assert seen[0].url.params["q"] == "dune"
        assert seen[0].headers["User-Agent"] == "TestAgent/1.0"
        assert seen[0].headers["X-Key"] == "k"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self) -> None:
        """Test that 5xx responses are retried."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                return httpx.Response(503)
            return httpx.Response(200, content=b"[]")

        downloader = Downloader(max_retries=3, retry_backoff=0, transport=httpx.MockTransport(handler))
        response = await downloader.fetch(HttpRequest(url="https://example.com/"))
        assert response.status_code == 200
        assert calls == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self) -> None:
        """Test that 404 fails immediately with the status code."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(404)

        downloader = Downloader(max_retries=3, retry_backoff=0, transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError) as exc_info:
            await downloader.fetch(HttpRequest(url="https://example.com/"), source="test")

        assert exc_info.value.status_code == 404
        assert exc_info.value.source == "test"
        assert calls == 1

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        """Test that connection failures become TransportError after retries."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        downloader = Downloader(max_retries=2, retry_backoff=0, transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError):
            await downloader.fetch(HttpRequest(url="https://example.com/"))
        assert calls == 2

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test that timeouts become TransportError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        downloader = Downloader(max_retries=1, retry_backoff=0, transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError, match="Timeout"):
            await downloader.fetch(HttpRequest(url="https://example.com/"))

    @pytest.mark.asyncio
    async def test_rate_limiter_per_source(self) -> None:
        """Test that one rate limiter is kept per source."""
        downloader = Downloader(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        limit = RateLimitConfig(requests_per_second=100.0, burst_limit=5)

        await downloader.fetch(HttpRequest(url="https://a.example/"), "a", limit)
        await downloader.fetch(HttpRequest(url="https://a.example/"), "a", limit)
        await downloader.fetch(HttpRequest(url="https://b.example/"), "b", limit)

        assert set(downloader._rate_limiters) == {"a", "b"}
