"""
Adapter Base Module
===================

Defines the abstract base class for source-specific adapters.
Adapters are responsible for:
1. Building the HTTP request for a search and parsing the response
   into partial records
2. Resolving a partial record into a complete one
3. Mapping source vocabularies into the catalog schema
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from catalog_agent.core.defaults import create_collection
from catalog_agent.core.enums import CollectionType, ErrorKind, FetchKey, FieldKind, MessageLevel
from catalog_agent.core.schema import Collection, Field, Record
from catalog_agent.fetch.errors import ConfigurationError, ContractError
from catalog_agent.fetch.http import Downloader, HttpRequest, HttpResponse
from catalog_agent.fetch.images import ImageRegistrar
from catalog_agent.fetch.jobs import FetchJob, ResolveJob, current_job
from catalog_agent.fetch.messages import FetchMessage, MessageCallback
from catalog_agent.fetch.normalizer import Normalizer
from catalog_agent.fetch.registry import SourceConfig
from catalog_agent.fetch.request import FetchRequest, FetchResult

logger = logging.getLogger(__name__)

IMAGE_FAILED = "The cover image could not be loaded."


class BaseAdapter(ABC):
    """
    Abstract base class for source-specific adapters.

    Subclasses must implement:
    - build_search: Build the HTTP request for a search
    - parse_search: Turn a response into partial records

    and may override resolve_entry to complete a record with further
    requests. search() and resolve_full() never block: they return a
    started job.
    """

    # Adapter identification (override in subclasses)
    ADAPTER_NAME: str = "base"
    ADAPTER_VERSION: str = "1.0.0"
    DEFAULT_NAME: str = "Base"

    # Capabilities
    SEARCH_KEYS: frozenset[FetchKey] = frozenset()
    COLLECTION_TYPES: frozenset[CollectionType] = frozenset()

    # Optional fields the source can fill, name -> label
    OPTIONAL_FIELDS: dict[str, str] = {}

    # custom_config keys that must be non-empty before any request
    REQUIRED_CONFIG: tuple[str, ...] = ()

    def __init__(
        self,
        source: SourceConfig | None = None,
        downloader: Downloader | None = None,
        image_registrar: ImageRegistrar | None = None,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            source: Source configuration from sources.yaml
            downloader: Shared HTTP pipeline
            image_registrar: Where cover images are registered; images are
                left unset when None
        """
        self.source = source or SourceConfig(name=self.ADAPTER_NAME, adapter=self.ADAPTER_NAME)
        self.config: dict[str, Any] = self.source.custom_config
        self.downloader = downloader or Downloader()
        self.image_registrar = image_registrar
        self.normalizer = Normalizer()

        self._jobs: set[FetchJob] = set()
        self._results: dict[int, FetchResult] = {}
        self._raw: dict[UUID, Any] = {}
        self._listeners: list[MessageCallback] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    @property
    def name(self) -> str:
        return self.source.name

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def can_search(self, key: FetchKey | None) -> bool:
        return key in self.SEARCH_KEYS

    def can_fetch(self, collection_type: CollectionType | None) -> bool:
        return collection_type in self.COLLECTION_TYPES

    def check_config(self) -> None:
        """
        Verify required configuration before any network call.

        Raises:
            ConfigurationError: If a required key is missing or empty
        """
        missing = [key for key in self.REQUIRED_CONFIG if not str(self.config.get(key, "")).strip()]
        if missing:
            raise ConfigurationError(
                f"{self.DEFAULT_NAME} requires {', '.join(missing)}. "
                f"Those values must be entered in the source configuration.",
                self.name,
            )

    def check_request(self, request: FetchRequest) -> None:
        """
        Raises:
            ContractError: If the request's key or collection type is unsupported
        """
        if request.is_empty:
            raise ContractError("Empty request", self.name)
        if not self.can_search(request.key):
            raise ContractError(f"Search key '{request.key.value}' is not supported", self.name)
        if not self.can_fetch(request.collection_type):
            raise ContractError(
                f"Collection type '{request.collection_type.value}' is not supported", self.name
            )

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def _track(self, job: FetchJob) -> FetchJob:
        self._jobs.add(job)
        job.on_done(self._jobs.discard)
        job.start()
        return job

    def search(self, request: FetchRequest) -> FetchJob:
        """
        Start a search.

        Args:
            request: The search request

        Returns:
            A started FetchJob
        """
        logger.debug(f"{self.name}: searching {request}")
        return self._track(FetchJob(self, request))

    def resolve_full(self, uid: int) -> ResolveJob:
        """
        Start resolving a search result into a complete record.

        Args:
            uid: uid of a result returned by one of this adapter's searches

        Returns:
            A started ResolveJob
        """
        return self._track(ResolveJob(self, uid))

    def cancel(self) -> int:
        """
        Cancel every running job started by this adapter.

        Returns:
            Number of jobs cancelled
        """
        return sum(1 for job in list(self._jobs) if job.cancel())

    @property
    def active_jobs(self) -> list[FetchJob]:
        return [job for job in self._jobs if not job.done]

    def remember_result(self, result: FetchResult) -> None:
        self._results[result.uid] = result

    def result_for(self, uid: int) -> FetchResult | None:
        return self._results.get(uid)

    def remember_raw(self, record: Record, data: Any) -> None:
        """Keep source data a later resolve needs, keyed by record id."""
        self._raw[record.id] = data

    def raw_for(self, record: Record) -> Any:
        return self._raw.get(record.id)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message_listener(self, callback: MessageCallback) -> None:
        self._listeners.append(callback)

    def remove_message_listener(self, callback: MessageCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def report(self, message: FetchMessage) -> None:
        for callback in self._listeners:
            callback(message)

    def warn(self, text: str, kind: ErrorKind = ErrorKind.PARTIAL) -> None:
        """Report a non-fatal problem against the running job."""
        job = current_job.get()
        if job is not None and job.adapter is self:
            job.report(text, MessageLevel.WARNING, kind)
        else:
            self.report(FetchMessage(self.name, MessageLevel.WARNING, text, kind))

    # ------------------------------------------------------------------
    # Search pipeline
    # ------------------------------------------------------------------

    def selected_optional_fields(self, request: FetchRequest) -> list[str]:
        names = request.optional_fields
        if names is None:
            names = tuple(self.source.optional_fields)
        return [name for name in names if name in self.OPTIONAL_FIELDS]

    def optional_field(self, name: str) -> Field:
        """Field definition for an optional field; override for non-plain kinds."""
        return Field(name=name, title=self.OPTIONAL_FIELDS[name])

    def new_collection(self, request: FetchRequest) -> Collection:
        """Create the collection records of one job belong to."""
        collection = create_collection(request.collection_type)
        for name in self.selected_optional_fields(request):
            collection.schema.ensure_field(self.optional_field(name))
        return collection

    async def fetch_http(self, request: HttpRequest) -> HttpResponse:
        return await self.downloader.fetch(request, self.name, self.source.rate_limit)

    async def perform_search(self, request: FetchRequest) -> Any:
        """
        Run the network stage of a search.

        Returns:
            Payload handed to parse_search
        """
        self.check_config()
        self.check_request(request)
        return await self.fetch_http(self.build_search(request))

    @abstractmethod
    def build_search(self, request: FetchRequest) -> HttpRequest:
        """
        Build the HTTP request for a search.

        Args:
            request: A request this adapter supports

        Returns:
            HttpRequest to send
        """
        pass

    @abstractmethod
    def parse_search(self, response: Any, collection: Collection) -> list[Record]:
        """
        Parse a search response into partial records.

        Runs synchronously after the response has been accepted.

        Args:
            response: Payload returned by perform_search
            collection: Collection the new records belong to

        Returns:
            Records in source order

        Raises:
            ParseError: If the response is not in the expected shape
        """
        pass

    async def resolve_entry(self, record: Record) -> Record:
        """
        Complete a partial record.

        The default registers the cover image and returns the record.

        Args:
            record: Unfrozen working copy of the search result

        Returns:
            The completed record
        """
        await self.resolve_images(record)
        return record

    def update_request(self, record: Record) -> FetchRequest:
        """
        Derive a request that refreshes the record from this source.

        Returns:
            A title request, or an empty request if titles are not searchable
        """
        title = record.field("title")
        if title and self.can_search(FetchKey.TITLE) and self.can_fetch(record.collection_type):
            return FetchRequest(FetchKey.TITLE, title, record.collection_type)
        return FetchRequest.empty()

    # ------------------------------------------------------------------
    # Normalization helpers
    # ------------------------------------------------------------------

    def put(self, record: Record, name: str, value: str | Iterable[str] | None) -> None:
        """Set a field if the record's collection defines it."""
        if record.collection.has_field(name):
            record.set_field(name, value)

    def set_choice(self, record: Record, name: str, values: str | Iterable[str]) -> None:
        """
        Set a choice field, extending its allowed values with unknown ones.

        Args:
            record: Record to update
            name: Choice field name
            values: One value or several
        """
        if not record.collection.has_field(name):
            return
        values = [values] if isinstance(values, str) else [v for v in values if v]
        if not values:
            return
        added = record.collection.schema.extend_allowed(name, values)
        if added:
            logger.debug(f"{self.name}: extended '{name}' with {added}")
        record.set_field(name, values)

    async def register_image(self, url: str) -> str:
        """
        Register an image URL with the image registrar.

        Runs the blocking registrar in a worker thread.

        Returns:
            Image id, or an empty string on failure (a warning is reported)
        """
        if not url:
            return ""
        if self.image_registrar is None:
            logger.debug(f"{self.name}: no image registrar, skipping {url}")
            return ""
        image_id = await asyncio.to_thread(self.image_registrar.add_image, url, True)
        if not image_id:
            self.warn(IMAGE_FAILED)
        return image_id

    async def resolve_images(self, record: Record) -> None:
        """Replace image URLs in image fields with registered image ids."""
        if self.image_registrar is None:
            return
        for field in record.collection.schema:
            if field.kind != FieldKind.IMAGE:
                continue
            value = record.field(field.name)
            if value.startswith(("http://", "https://")):
                record.set_field(field.name, await self.register_image(value))

    @classmethod
    def get_info(cls) -> dict[str, str]:
        """Get adapter information."""
        return {
            "name": cls.ADAPTER_NAME,
            "version": cls.ADAPTER_VERSION,
            "class": cls.__name__,
            "title": cls.DEFAULT_NAME,
            "keys": ", ".join(sorted(k.value for k in cls.SEARCH_KEYS)),
            "types": ", ".join(sorted(t.value for t in cls.COLLECTION_TYPES)),
        }
