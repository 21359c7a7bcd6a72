"""
Source Registry Module
======================

Manages data source configurations loaded from YAML files. Sources define
which adapters are available, their credentials, default optional fields
and rate limits.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from catalog_agent.core.comparison import MatchRule, get_match_rule
from catalog_agent.core.enums import CollectionType

_ENV_RX = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def expand_env(value: Any) -> Any:
    """Expand ${VAR} references in string config values from the environment."""
    if isinstance(value, str):
        return _ENV_RX.sub(lambda m: os.environ.get(m.group(1), ""), value)
    return value


@dataclass
class RateLimitConfig:
    """Token bucket settings for one source."""

    requests_per_second: float = 1.0
    burst_limit: int = 5

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RateLimitConfig:
        """Build from a mapping; missing keys keep their defaults."""
        if data is None:
            return cls()
        return cls(
            requests_per_second=float(data.get("requests_per_second", 1.0)),
            burst_limit=int(data.get("burst_limit", 5)),
        )


@dataclass
class SourceConfig:
    """One entry of the sources list."""

    name: str
    adapter: str
    enabled: bool = True
    description: str = ""
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    optional_fields: list[str] = field(default_factory=list)
    custom_config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], default_rate_limit: RateLimitConfig | None = None
    ) -> SourceConfig:
        """Create from dictionary."""
        rate_limit_data = data.get("rate_limit")
        if rate_limit_data:
            rate_limit = RateLimitConfig.from_dict(rate_limit_data)
        elif default_rate_limit:
            rate_limit = default_rate_limit
        else:
            rate_limit = RateLimitConfig()

        custom_config = {
            key: expand_env(value) for key, value in (data.get("custom_config") or {}).items()
        }

        return cls(
            name=data["name"],
            adapter=data.get("adapter", data["name"]),
            enabled=data.get("enabled", True),
            description=data.get("description", ""),
            rate_limit=rate_limit,
            optional_fields=list(data.get("optional_fields", [])),
            custom_config=custom_config,
        )


@dataclass
class MatchingConfig:
    """Thresholds and weight overrides for record matching."""

    auto_merge_threshold: float = 6.0
    review_queue_threshold: float = 3.0
    weights: dict[CollectionType, dict[str, float]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MatchingConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        thresholds = data.get("thresholds") or {}
        weights: dict[CollectionType, dict[str, float]] = {}
        for type_name, overrides in (data.get("weights") or {}).items():
            weights[CollectionType(type_name)] = {
                name: float(weight) for name, weight in overrides.items()
            }
        return cls(
            auto_merge_threshold=float(thresholds.get("auto_merge", 6.0)),
            review_queue_threshold=float(thresholds.get("review_queue", 3.0)),
            weights=weights,
        )

    def rule_for(self, collection_type: CollectionType) -> MatchRule:
        """Get the match rule for a collection type with any configured overrides applied."""
        rule = get_match_rule(collection_type)
        overrides = self.weights.get(collection_type)
        return rule.with_weights(overrides) if overrides else rule


@dataclass
class GlobalConfig:
    """Settings from the global section."""

    default_rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    user_agent: str = "CatalogAgent/0.1"
    image_storage_path: str = "~/.catalog_agent/images"
    request_timeout: int = 30
    max_retries: int = 3

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GlobalConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            default_rate_limit=RateLimitConfig.from_dict(
                data.get("default_rate_limit")
            ),
            user_agent=data.get("user_agent", "CatalogAgent/0.1"),
            image_storage_path=data.get(
                "image_storage_path", "~/.catalog_agent/images"
            ),
            request_timeout=int(data.get("request_timeout", 30)),
            max_retries=int(data.get("max_retries", 3)),
        )


class SourceRegistry:
    """
    Configured fetch sources, keyed by source name.

    Also holds the global HTTP settings and the record matching
    thresholds read from the same file.
    """

    def __init__(self) -> None:
        self._sources: dict[str, SourceConfig] = {}
        self._global_config: GlobalConfig = GlobalConfig()
        self._matching: MatchingConfig = MatchingConfig()

    @property
    def global_config(self) -> GlobalConfig:
        """HTTP and storage settings shared by all sources."""
        return self._global_config

    @property
    def matching(self) -> MatchingConfig:
        """Thresholds and weight overrides for the reconciler."""
        return self._matching

    def load_config(self, config_path: Path | str) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the sources.yaml file
        """
        config_path = Path(config_path).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        self.load_dict(data)

    def load_dict(self, data: dict[str, Any]) -> None:
        """
        Load configuration from an already-parsed mapping.

        Args:
            data: Mapping with optional "global", "matching" and "sources" keys
        """
        self._global_config = GlobalConfig.from_dict(data.get("global"))
        self._matching = MatchingConfig.from_dict(data.get("matching"))

        self._sources.clear()
        for source_data in data.get("sources") or []:
            source = SourceConfig.from_dict(
                source_data, self._global_config.default_rate_limit
            )
            self._sources[source.name] = source

    def add_source(self, source: SourceConfig) -> None:
        """Register or replace a source configuration."""
        self._sources[source.name] = source

    def get_source(self, name: str) -> SourceConfig | None:
        """
        Returns:
            The source called name, or None
        """
        return self._sources.get(name)

    def list_sources(self) -> list[SourceConfig]:
        """All sources in file order, disabled ones included."""
        return list(self._sources.values())

    def list_enabled_sources(self) -> list[SourceConfig]:
        """Sources with enabled: true."""
        return [s for s in self._sources.values() if s.enabled]


# Loaded lazily by get_default_registry()
_default_registry: SourceRegistry | None = None


def get_default_registry() -> SourceRegistry:
    """
    Get the default source registry instance.

    Loads configuration from the path specified in SOURCES_CONFIG_PATH
    environment variable, or falls back to config/sources.yaml.

    Returns:
        The global SourceRegistry instance
    """
    global _default_registry

    if _default_registry is None:
        _default_registry = SourceRegistry()

        config_path = os.environ.get("SOURCES_CONFIG_PATH")
        if config_path:
            path = Path(config_path)
        else:
            # Default to config/sources.yaml relative to project root
            module_dir = Path(__file__).parent
            project_root = module_dir.parent.parent
            path = project_root / "config" / "sources.yaml"

        if path.exists():
            _default_registry.load_config(path)

    return _default_registry


def reset_default_registry() -> None:
    """Forget the default registry so the next call reloads it."""
    global _default_registry
    _default_registry = None
