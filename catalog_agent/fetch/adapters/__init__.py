"""
Source Adapters
===============

Adapter classes by name. Source configurations refer to an adapter by
the name it is registered under here.
"""

from __future__ import annotations

from typing import Any, Type

from catalog_agent.fetch.adapters.base import BaseAdapter
from catalog_agent.fetch.adapters.igdb import IgdbAdapter
from catalog_agent.fetch.adapters.kino import KinoAdapter
from catalog_agent.fetch.adapters.omdb import OmdbAdapter
from catalog_agent.fetch.adapters.openlibrary import OpenLibraryAdapter
from catalog_agent.fetch.registry import SourceConfig

ADAPTER_REGISTRY: dict[str, Type[BaseAdapter]] = {
    cls.ADAPTER_NAME: cls
    for cls in (IgdbAdapter, KinoAdapter, OmdbAdapter, OpenLibraryAdapter)
}


def get_adapter(
    adapter_type: str,
    source: SourceConfig | None = None,
    **kwargs: Any,
) -> BaseAdapter | None:
    """
    Instantiate the adapter registered as adapter_type.

    Args:
        adapter_type: Registered adapter name, e.g. "omdb"
        source: Source configuration handed to the adapter
        **kwargs: downloader and image_registrar

    Returns:
        A new adapter, or None for unknown names
    """
    adapter_class = ADAPTER_REGISTRY.get(adapter_type)
    if adapter_class is None:
        return None
    return adapter_class(source, **kwargs)


def register_adapter(name: str, adapter_class: Type[BaseAdapter]) -> None:
    """
    Make an adapter class available under name, replacing any earlier one.

    Raises:
        TypeError: If adapter_class is not a BaseAdapter subclass
    """
    if not issubclass(adapter_class, BaseAdapter):
        raise TypeError(f"{adapter_class} must inherit from BaseAdapter")
    ADAPTER_REGISTRY[name] = adapter_class


def list_adapters() -> list[str]:
    return list(ADAPTER_REGISTRY)


def get_adapter_info(adapter_type: str) -> dict[str, str] | None:
    """Capabilities of a registered adapter class, or None for unknown names."""
    adapter_class = ADAPTER_REGISTRY.get(adapter_type)
    return adapter_class.get_info() if adapter_class else None


__all__ = [
    "ADAPTER_REGISTRY",
    "get_adapter",
    "register_adapter",
    "list_adapters",
    "get_adapter_info",
    "BaseAdapter",
    "IgdbAdapter",
    "KinoAdapter",
    "OmdbAdapter",
    "OpenLibraryAdapter",
]
