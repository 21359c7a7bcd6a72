"""
Catalog Agent Fetch Framework
=============================

This package fetches metadata for catalog records from external sources
and reconciles the results with existing records.

Pipeline Stages:
1. Select - Pick adapters that support the request's key and collection type
2. Fetch - Shared HTTP pipeline with rate limits, retries and timeouts
3. Parse - Adapters turn JSON/HTML responses into partial records
4. Resolve - Adapters complete a chosen record (second requests, cover images)
5. Reconcile - Score fetched records against the catalog and propose merges
"""

from catalog_agent.fetch.registry import (
    SourceRegistry,
    SourceConfig,
    RateLimitConfig,
    MatchingConfig,
    get_default_registry,
)
from catalog_agent.fetch.errors import (
    FetchError,
    ConfigurationError,
    ContractError,
    TransportError,
    ParseError,
)
from catalog_agent.fetch.http import (
    Downloader,
    HttpRequest,
    HttpResponse,
    TokenBucket,
)
from catalog_agent.fetch.images import (
    ImageRegistrar,
    LocalImageStore,
)
from catalog_agent.fetch.messages import FetchMessage
from catalog_agent.fetch.request import (
    FetchRequest,
    FetchResult,
)
from catalog_agent.fetch.jobs import (
    FetchJob,
    ResolveJob,
)
from catalog_agent.fetch.manager import FetchManager
from catalog_agent.fetch.merge import (
    Reconciler,
    MergeProposal,
    MatchAction,
    MatchCandidate,
    ChangeSink,
    CollectingSink,
)

__all__ = [
    # Registry
    "SourceRegistry",
    "SourceConfig",
    "RateLimitConfig",
    "MatchingConfig",
    "get_default_registry",
    # Errors
    "FetchError",
    "ConfigurationError",
    "ContractError",
    "TransportError",
    "ParseError",
    # HTTP
    "Downloader",
    "HttpRequest",
    "HttpResponse",
    "TokenBucket",
    # Images
    "ImageRegistrar",
    "LocalImageStore",
    # Requests and jobs
    "FetchMessage",
    "FetchRequest",
    "FetchResult",
    "FetchJob",
    "ResolveJob",
    "FetchManager",
    # Reconciler
    "Reconciler",
    "MergeProposal",
    "MatchAction",
    "MatchCandidate",
    "ChangeSink",
    "CollectingSink",
]
