"""Tests for the source registry module."""

import tempfile
from pathlib import Path

import pytest
import yaml

from catalog_agent.core.enums import CollectionType
from catalog_agent.fetch.registry import (
    GlobalConfig,
    MatchingConfig,
    RateLimitConfig,
    SourceConfig,
    SourceRegistry,
    expand_env,
    get_default_registry,
    reset_default_registry,
)


class TestRateLimitConfig:
    """Tests for RateLimitConfig."""

    def test_default_values(self) -> None:
        """Test default rate limit values."""
        config = RateLimitConfig()
        assert config.requests_per_second == 1.0
        assert config.burst_limit == 5

    def test_from_dict(self) -> None:
        """Test creating from dictionary."""
        config = RateLimitConfig.from_dict({"requests_per_second": 4, "burst_limit": 4})
        assert config.requests_per_second == 4.0
        assert config.burst_limit == 4

    def test_from_dict_none(self) -> None:
        """Test creating from None returns defaults."""
        assert RateLimitConfig.from_dict(None) == RateLimitConfig()


class TestSourceConfig:
    """Tests for SourceConfig."""

    def test_from_dict_minimal(self) -> None:
        """Test creating with minimal data; adapter defaults to the name."""
        config = SourceConfig.from_dict({"name": "openlibrary"})
        assert config.name == "openlibrary"
        assert config.adapter == "openlibrary"
        assert config.enabled is True
        assert config.optional_fields == []
        assert config.custom_config == {}

    def test_from_dict_full(self) -> None:
        """Test creating with full data."""
        config = SourceConfig.from_dict({
            "name": "games",
            "adapter": "igdb",
            "enabled": False,
            "description": "IGDB",
            "optional_fields": ["pegi"],
            "rate_limit": {"requests_per_second": 4, "burst_limit": 4},
            "custom_config": {"Client ID": "abc", "API Key": "xyz"},
        })
        assert config.adapter == "igdb"
        assert config.enabled is False
        assert config.optional_fields == ["pegi"]
        assert config.rate_limit.burst_limit == 4
        assert config.custom_config["API Key"] == "xyz"

    def test_default_rate_limit(self) -> None:
        """Test that the global default rate limit is used when none is given."""
        default = RateLimitConfig(requests_per_second=9.0, burst_limit=9)
        config = SourceConfig.from_dict({"name": "omdb"}, default)
        assert config.rate_limit is default

    def test_env_expansion(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that ${VAR} values in custom_config come from the environment."""
        monkeypatch.setenv("TEST_OMDB_KEY", "secret")
        monkeypatch.delenv("TEST_MISSING_KEY", raising=False)
        config = SourceConfig.from_dict({
            "name": "omdb",
            "custom_config": {"API Key": "${TEST_OMDB_KEY}", "Other": "${TEST_MISSING_KEY}", "Port": 8080},
        })
        assert config.custom_config["API Key"] == "secret"
        assert config.custom_config["Other"] == ""
        assert config.custom_config["Port"] == 8080

    def test_expand_env_non_string(self) -> None:
        """Test that non-string values pass through."""
        assert expand_env(3) == 3
        assert expand_env(None) is None


class TestMatchingConfig:
    """Tests for MatchingConfig."""

    def test_defaults(self) -> None:
        """Test default thresholds."""
        config = MatchingConfig.from_dict(None)
        assert config.auto_merge_threshold == 6.0
        assert config.review_queue_threshold == 3.0
        assert config.weights == {}

    def test_weights(self) -> None:
        """Test that weight overrides apply to the collection's rule."""
        config = MatchingConfig.from_dict({
            "thresholds": {"auto_merge": 8, "review_queue": 4},
            "weights": {"book": {"title": 5, "pages": 1}},
        })
        assert config.auto_merge_threshold == 8.0
        rule = config.rule_for(CollectionType.BOOK)
        weights = dict(rule.weights)
        assert weights["title"] == 5.0
        assert weights["author"] == 2
        assert weights["pages"] == 1.0
        assert rule.identifier_fields == ("isbn", "lccn")

    def test_empty_sections(self) -> None:
        """Test that blank YAML sections fall back to the defaults."""
        config = MatchingConfig.from_dict(yaml.safe_load("thresholds:\nweights:\n"))
        assert config.auto_merge_threshold == 6.0
        assert config.review_queue_threshold == 3.0
        assert config.weights == {}

    def test_rule_without_overrides(self) -> None:
        """Test that types without overrides use the default rule."""
        config = MatchingConfig()
        assert dict(config.rule_for(CollectionType.GAME).weights)["title"] == 3

    def test_unknown_collection_type(self) -> None:
        """Test that unknown collection types are rejected."""
        with pytest.raises(ValueError):
            MatchingConfig.from_dict({"weights": {"vinyl": {"title": 1}}})


class TestSourceRegistry:
    """Tests for SourceRegistry."""

    @pytest.fixture
    def config_file(self) -> str:
        """Create a temporary config file."""
        config = {
            "global": {
                "default_rate_limit": {"requests_per_second": 2.0, "burst_limit": 10},
                "user_agent": "TestAgent/1.0",
                "image_storage_path": "/tmp/test_images",
                "request_timeout": 5,
            },
            "matching": {"thresholds": {"auto_merge": 7.0, "review_queue": 2.0}},
            "sources": [
                {
                    "name": "igdb",
                    "adapter": "igdb",
                    "enabled": True,
                    "custom_config": {"Client ID": "id", "API Key": "key"},
                },
                {
                    "name": "kino",
                    "adapter": "kino",
                    "enabled": False,
                },
            ],
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(config, f)
            return f.name

    def test_load_config(self, config_file: str) -> None:
        """Test loading configuration from file."""
        registry = SourceRegistry()
        registry.load_config(config_file)

        assert len(registry.list_sources()) == 2
        assert registry.global_config.user_agent == "TestAgent/1.0"
        assert registry.global_config.request_timeout == 5
        assert registry.matching.auto_merge_threshold == 7.0

        kino = registry.get_source("kino")
        assert kino is not None
        assert kino.rate_limit.requests_per_second == 2.0

    def test_load_config_not_found(self) -> None:
        """Test loading a non-existent config file."""
        registry = SourceRegistry()
        with pytest.raises(FileNotFoundError):
            registry.load_config("/nonexistent/sources.yaml")

    def test_list_enabled_sources(self, config_file: str) -> None:
        """Test listing only enabled sources."""
        registry = SourceRegistry()
        registry.load_config(config_file)
        assert [s.name for s in registry.list_enabled_sources()] == ["igdb"]

    def test_add_source(self) -> None:
        """Test registering a source in code."""
        registry = SourceRegistry()
        registry.add_source(SourceConfig(name="ol", adapter="openlibrary"))
        assert registry.get_source("ol").adapter == "openlibrary"
        assert registry.get_source("missing") is None

    def test_load_dict_replaces_sources(self) -> None:
        """Test that loading again replaces earlier sources."""
        registry = SourceRegistry()
        registry.load_dict({"sources": [{"name": "a"}, {"name": "b"}]})
        registry.load_dict({"sources": [{"name": "c"}]})
        assert [s.name for s in registry.list_sources()] == ["c"]
        assert registry.global_config == GlobalConfig()

    def test_load_blank_sections(self) -> None:
        """Test a file whose sections are present but empty."""
        registry = SourceRegistry()
        registry.load_dict(yaml.safe_load("global:\nmatching:\n  thresholds:\nsources:\n"))
        assert registry.list_sources() == []
        assert registry.matching.auto_merge_threshold == 6.0


class TestDefaultRegistry:
    """Tests for the default registry singleton."""

    def test_env_path(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that SOURCES_CONFIG_PATH selects the config file."""
        path = tmp_path / "sources.yaml"
        path.write_text(yaml.dump({"sources": [{"name": "omdb"}]}))
        monkeypatch.setenv("SOURCES_CONFIG_PATH", str(path))

        reset_default_registry()
        try:
            registry = get_default_registry()
            assert registry.get_source("omdb") is not None
            assert get_default_registry() is registry
        finally:
            reset_default_registry()

    def test_missing_file_gives_empty_registry(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that a missing config file leaves the registry empty."""
        monkeypatch.setenv("SOURCES_CONFIG_PATH", str(tmp_path / "missing.yaml"))
        reset_default_registry()
        try:
            assert get_default_registry().list_sources() == []
        finally:
            reset_default_registry()
