"""Shared fixtures for fetch tests."""

import asyncio
from collections.abc import Callable, Iterable

import httpx
import pytest

from catalog_agent.core.enums import CollectionType, FetchKey
from catalog_agent.core.schema import Collection, Record
from catalog_agent.fetch.adapters.base import BaseAdapter
from catalog_agent.fetch.http import Downloader, HttpRequest
from catalog_agent.fetch.images import ImageRegistrar
from catalog_agent.fetch.registry import SourceConfig
from catalog_agent.fetch.request import FetchRequest


class RecordingRegistrar(ImageRegistrar):
    """Image registrar that records URLs; URLs containing "broken" fail."""

    def __init__(self) -> None:
        self.urls: list[str] = []

    def add_image(self, url: str, quiet: bool = True) -> str:
        self.urls.append(url)
        if "broken" in url:
            return ""
        return f"image-{len(self.urls)}.jpg"


class StubAdapter(BaseAdapter):
    """Adapter whose network stage can wait on an event and returns fixed titles."""

    ADAPTER_NAME = "stub"
    DEFAULT_NAME = "Stub Source"
    SEARCH_KEYS = frozenset({FetchKey.TITLE})
    COLLECTION_TYPES = frozenset({CollectionType.BOOK})

    def __init__(
        self,
        titles: list[str],
        name: str = "stub",
        gate: asyncio.Event | None = None,
        error: Exception | None = None,
        warning: str = "",
        types: Iterable[CollectionType] | None = None,
        required: tuple[str, ...] = (),
        config: dict[str, str] | None = None,
    ) -> None:
        super().__init__(SourceConfig(name=name, adapter="stub", custom_config=dict(config or {})))
        self.titles = titles
        self.gate = gate
        self.error = error
        self.warning = warning
        self.parsed = 0
        self.network_calls = 0
        if types is not None:
            self.COLLECTION_TYPES = frozenset(types)
        self.REQUIRED_CONFIG = required

    def build_search(self, request: FetchRequest) -> HttpRequest:
        return HttpRequest(url="https://stub.example/search")

    async def perform_search(self, request: FetchRequest) -> list[str]:
        self.check_config()
        self.check_request(request)
        self.network_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.warning:
            self.warn(self.warning)
        if self.error is not None:
            raise self.error
        return list(self.titles)

    def parse_search(self, response: list[str], collection: Collection) -> list[Record]:
        self.parsed += 1
        records = []
        for title in response:
            record = Record(collection)
            record.set_field("title", title)
            records.append(record)
        return records


@pytest.fixture
def registrar() -> RecordingRegistrar:
    """Create a recording image registrar."""
    return RecordingRegistrar()


@pytest.fixture
def make_stub() -> Callable[..., StubAdapter]:
    """Factory for stub adapters."""
    return StubAdapter


@pytest.fixture
def make_downloader() -> Callable[[Callable[[httpx.Request], httpx.Response]], Downloader]:
    """Factory for downloaders backed by a mock transport, without retries."""
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> Downloader:
        return Downloader(
            user_agent="TestAgent/1.0",
            max_retries=1,
            retry_backoff=0,
            transport=httpx.MockTransport(handler),
        )

    return factory
