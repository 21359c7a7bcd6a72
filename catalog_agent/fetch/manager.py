"""
Fetch Manager Module
====================

Fans a request out to every eligible adapter and merges their results
into one lazy stream, in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable

from catalog_agent.core.enums import ErrorKind, MessageLevel
from catalog_agent.core.schema import Record
from catalog_agent.fetch.adapters import get_adapter
from catalog_agent.fetch.adapters.base import BaseAdapter
from catalog_agent.fetch.http import Downloader
from catalog_agent.fetch.images import ImageRegistrar, get_default_image_store
from catalog_agent.fetch.jobs import FetchJob
from catalog_agent.fetch.messages import FetchMessage, MessageCallback
from catalog_agent.fetch.registry import SourceRegistry
from catalog_agent.fetch.request import FetchRequest, FetchResult

logger = logging.getLogger(__name__)


class FetchManager:
    """
    Orchestrates searches across several source adapters.

    Only adapters that support both the request's key and collection
    type are started. Results from all of them arrive through a single
    queue. Several requests may run at once; the `finished` event is set
    once the jobs of every running request are terminal.
    """

    def __init__(
        self,
        adapters: Iterable[BaseAdapter],
        on_message: MessageCallback | None = None,
    ) -> None:
        self.adapters: list[BaseAdapter] = []
        self.messages: list[FetchMessage] = []
        self.on_message = on_message
        self.finished = asyncio.Event()
        self.finished.set()

        self._results: dict[int, FetchResult] = {}
        # One job list per request currently being collected
        self._running: list[list[FetchJob]] = []
        self._by_name: dict[str, BaseAdapter] = {}

        for adapter in adapters:
            self.add_adapter(adapter)

    @classmethod
    def from_registry(
        cls,
        registry: SourceRegistry,
        image_registrar: ImageRegistrar | None = None,
        downloader: Downloader | None = None,
        on_message: MessageCallback | None = None,
    ) -> FetchManager:
        """
        Build a manager with an adapter for every enabled source.

        Args:
            registry: Loaded source registry
            image_registrar: Image store; defaults to a LocalImageStore at
                IMAGE_STORAGE_PATH or the registry's image_storage_path
            downloader: Shared HTTP pipeline; built from the registry's
                global settings when None
            on_message: Optional callback for fetch messages

        Returns:
            A FetchManager
        """
        settings = registry.global_config
        if downloader is None:
            downloader = Downloader(
                user_agent=settings.user_agent,
                timeout=settings.request_timeout,
                max_retries=settings.max_retries,
            )
        if image_registrar is None:
            image_registrar = get_default_image_store(
                settings.image_storage_path,
                user_agent=settings.user_agent,
                timeout=settings.request_timeout,
            )

        adapters = []
        for source in registry.list_enabled_sources():
            adapter = get_adapter(
                source.adapter,
                source,
                downloader=downloader,
                image_registrar=image_registrar,
            )
            if adapter is None:
                logger.warning(f"Unknown adapter '{source.adapter}' for source '{source.name}'")
                continue
            adapters.append(adapter)
        return cls(adapters, on_message=on_message)

    def add_adapter(self, adapter: BaseAdapter) -> None:
        """
        Raises:
            ValueError: If an adapter with the same source name is already added
        """
        if adapter.name in self._by_name:
            raise ValueError(f"Duplicate source name: {adapter.name}")
        adapter.add_message_listener(self._on_adapter_message)
        self.adapters.append(adapter)
        self._by_name[adapter.name] = adapter

    def remove_adapter(self, name: str) -> BaseAdapter | None:
        """Remove the adapter for a source; returns it, or None if unknown."""
        adapter = self._by_name.pop(name, None)
        if adapter is not None:
            adapter.remove_message_listener(self._on_adapter_message)
            self.adapters.remove(adapter)
        return adapter

    def retain_adapters(self, names: Iterable[str]) -> None:
        """Keep only the adapters of the named sources."""
        keep = set(names)
        for adapter in list(self.adapters):
            if adapter.name not in keep:
                self.remove_adapter(adapter.name)

    def get_adapter(self, name: str) -> BaseAdapter | None:
        return self._by_name.get(name)

    def eligible_adapters(self, request: FetchRequest) -> list[BaseAdapter]:
        """Adapters that support the request's key and collection type."""
        if request.is_empty:
            return []
        return [
            a for a in self.adapters
            if a.can_search(request.key) and a.can_fetch(request.collection_type)
        ]

    def _on_adapter_message(self, message: FetchMessage) -> None:
        self.messages.append(message)
        if self.on_message is not None:
            self.on_message(message)

    def _report(self, source: str, text: str, kind: ErrorKind) -> None:
        self._on_adapter_message(FetchMessage(source, MessageLevel.WARNING, text, kind))

    @property
    def running(self) -> bool:
        return any(not job.done for jobs in self._running for job in jobs)

    def result(self, uid: int) -> FetchResult | None:
        return self._results.get(uid)

    async def execute(
        self,
        request: FetchRequest,
        timeout: float | None = None,
    ) -> AsyncIterator[FetchResult]:
        """
        Search every eligible adapter.

        Args:
            request: The search request; an empty request yields nothing
            timeout: Seconds after which unfinished jobs are cancelled

        Yields:
            FetchResult in arrival order
        """
        adapters = self.eligible_adapters(request)
        if not adapters:
            logger.info(f"No source can handle {request}")
            return
        logger.info(f"Searching {len(adapters)} source(s) for {request}")

        jobs = [adapter.search(request) for adapter in adapters]
        async for result in self._collect(jobs, timeout):
            yield result

    async def update(
        self,
        record: Record,
        timeout: float | None = None,
    ) -> AsyncIterator[FetchResult]:
        """
        Search every adapter that can refresh the record.

        Each adapter derives its own request from the record; adapters
        returning an empty request are skipped.

        Yields:
            FetchResult in arrival order
        """
        jobs = []
        for adapter in self.adapters:
            request = adapter.update_request(record)
            if request.is_empty or not adapter.can_search(request.key) or not adapter.can_fetch(request.collection_type):
                continue
            jobs.append(adapter.search(request))
        if not jobs:
            logger.info(f"No source can update {record!r}")
            return
        async for result in self._collect(jobs, timeout):
            yield result

    def update_request(self, record: Record, source: str) -> FetchRequest:
        """
        Derive the request a source would use to refresh a record.

        Returns:
            The request, or an empty request for unknown sources
        """
        adapter = self._by_name.get(source)
        if adapter is None:
            return FetchRequest.empty()
        return adapter.update_request(record)

    async def _collect(
        self,
        jobs: list[FetchJob],
        timeout: float | None,
    ) -> AsyncIterator[FetchResult]:
        queue: asyncio.Queue[FetchResult | FetchJob] = asyncio.Queue()
        for job in jobs:
            job.on_result(queue.put_nowait)
            job.on_done(queue.put_nowait)

        self._running.append(jobs)
        self.finished.clear()

        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        pending = len(jobs)
        try:
            while pending:
                remaining = None if deadline is None else max(0.0, deadline - loop.time())
                try:
                    item = await asyncio.wait_for(queue.get(), remaining)
                except TimeoutError:
                    for job in jobs:
                        if not job.done:
                            self._report(job.source, f"Search timed out after {timeout}s", ErrorKind.TRANSPORT)
                            job.cancel()
                    deadline = None
                    continue

                if isinstance(item, FetchJob):
                    pending -= 1
                    continue
                self._results[item.uid] = item
                yield item
        finally:
            # The caller stopped iterating early, or the loop ended normally
            for job in jobs:
                job.cancel()
            self._running.remove(jobs)
            if not self._running:
                self.finished.set()

    def cancel(self) -> None:
        """Cancel every running job; results already delivered stay valid."""
        cancelled = sum(adapter.cancel() for adapter in self.adapters)
        if cancelled:
            logger.info(f"Cancelled {cancelled} job(s)")

    async def fetch_entry(self, uid: int, timeout: float | None = None) -> Record | None:
        """
        Resolve a search result into a complete record.

        Args:
            uid: uid of a FetchResult delivered by this manager
            timeout: Seconds after which the resolve job is cancelled

        Returns:
            The complete, frozen record, or None if the uid is unknown, the
            resolve failed or was cancelled
        """
        result = self._results.get(uid)
        if result is None:
            logger.warning(f"No result with uid {uid}")
            return None
        adapter = self._by_name[result.source]

        job = adapter.resolve_full(uid)
        try:
            await asyncio.wait_for(job.wait(), timeout)
        except TimeoutError:
            self._report(job.source, f"Resolve timed out after {timeout}s", ErrorKind.TRANSPORT)
            job.cancel()
            return None
        return job.record
