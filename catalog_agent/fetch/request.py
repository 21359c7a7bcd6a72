"""Fetch requests and the results they produce."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace

from catalog_agent.core.enums import CollectionType, FetchKey
from catalog_agent.core.schema import Record

_uid_counter = itertools.count(1)


def next_uid() -> int:
    """Allocate a result uid, unique within the process."""
    return next(_uid_counter)


@dataclass(frozen=True)
class FetchRequest:
    """
    A logical search: key, value and target collection type.

    optional_fields of None means "use each source's configured
    defaults"; an empty tuple selects no optional fields.
    """

    key: FetchKey | None
    value: str = ""
    collection_type: CollectionType | None = None
    optional_fields: tuple[str, ...] | None = None

    @classmethod
    def empty(cls) -> FetchRequest:
        """A request that means "nothing to do"."""
        return cls(key=None)

    @property
    def is_empty(self) -> bool:
        return self.key is None or not self.value.strip() or self.collection_type is None

    def with_optional_fields(self, fields: tuple[str, ...] | list[str]) -> FetchRequest:
        return replace(self, optional_fields=tuple(fields))

    def __str__(self) -> str:
        if self.is_empty:
            return "<empty request>"
        return f"{self.key.value}={self.value!r} ({self.collection_type.value})"


@dataclass(frozen=True)
class FetchResult:
    """One record returned by a source for a request."""

    uid: int
    request: FetchRequest
    source: str
    record: Record

    @property
    def title(self) -> str:
        return self.record.field("title")

    @property
    def description(self) -> str:
        """Short summary used when listing results."""
        record = self.record
        parts = []
        for name in ("year", "pub_year", "platform", "director", "author", "writer", "publisher"):
            value = record.field(name)
            if value:
                parts.append(value)
        return "; ".join(parts[:3])
