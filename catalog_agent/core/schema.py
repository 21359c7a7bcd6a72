"""Canonical models for catalog fields, collections and records."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from uuid import UUID, uuid4

from pydantic import BaseModel, Field as PydanticField, field_validator, model_validator

from catalog_agent.core.enums import CollectionType, FieldKind
from catalog_agent.core.fieldformat import join_values


class FrozenRecordError(RuntimeError):
    """Raised when mutating a record that was already handed to a caller."""


class Field(BaseModel):
    """Definition of one catalog field."""

    name: str
    title: str = ""
    category: str = "General"
    kind: FieldKind = FieldKind.PLAIN
    allowed: list[str] = PydanticField(default_factory=list)
    allow_multiple: bool = False
    allow_grouped: bool = False
    allow_completion: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Field names are used as record keys and must not be blank."""
        if not v or not v.strip():
            raise ValueError("Field name must not be empty")
        return v

    @model_validator(mode="after")
    def allowed_only_for_choice(self) -> Field:
        """Only choice fields carry an allowed-value list."""
        if self.allowed and self.kind != FieldKind.CHOICE:
            raise ValueError(f"Field '{self.name}' is not a choice field but has allowed values")
        return self


class FieldSchema:
    """
    Ordered set of field definitions for one collection.

    Mutations (adding fields, extending allowed values) are serialized
    with a lock, since several adapters may discover new values for the
    same collection concurrently.
    """

    def __init__(self, fields: Iterable[Field] = ()) -> None:
        self._fields: dict[str, Field] = {}
        self._lock = threading.Lock()
        for f in fields:
            self.add_field(f)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[Field]:
        return iter(list(self._fields.values()))

    def __len__(self) -> int:
        return len(self._fields)

    def field_names(self) -> list[str]:
        """Field names in definition order."""
        return list(self._fields)

    def get(self, name: str) -> Field | None:
        return self._fields.get(name)

    def add_field(self, field: Field) -> None:
        """
        Add a field definition.

        Raises:
            ValueError: If a field with the same name already exists
        """
        with self._lock:
            if field.name in self._fields:
                raise ValueError(f"Duplicate field name: {field.name}")
            self._fields[field.name] = field

    def ensure_field(self, field: Field) -> Field:
        """Add a field unless one with the same name exists; return the stored field."""
        with self._lock:
            return self._fields.setdefault(field.name, field)

    def extend_allowed(self, name: str, values: Iterable[str]) -> list[str]:
        """
        Append values to a choice field's allowed list.

        Values already allowed are skipped, existing order is kept.

        Returns:
            The values that were actually added
        """
        with self._lock:
            field = self._fields.get(name)
            if field is None:
                raise KeyError(name)
            if field.kind != FieldKind.CHOICE:
                raise ValueError(f"Field '{name}' is not a choice field")
            added = list(dict.fromkeys(v for v in values if v and v not in field.allowed))
            # Swap in a new list, readers never observe a partial update
            field.allowed = [*field.allowed, *added]
            return added


class Collection:
    """A typed catalog collection and its field schema."""

    def __init__(
        self,
        collection_type: CollectionType,
        fields: Iterable[Field] = (),
        title: str = "",
    ) -> None:
        self.type = collection_type
        self.title = title
        self.schema = FieldSchema(fields)

    def has_field(self, name: str) -> bool:
        return name in self.schema

    def field_by_name(self, name: str) -> Field | None:
        return self.schema.get(name)

    def __repr__(self) -> str:
        return f"Collection(type={self.type.value!r}, fields={len(self.schema)})"


class Record:
    """
    One catalog item: an identifier, an owning collection and field values.

    Values are strings; multi-valued fields are stored joined with the
    field-format delimiter. Every field set on a record must exist in
    its collection's schema.
    """

    def __init__(self, collection: Collection, record_id: UUID | None = None) -> None:
        self.id = record_id or uuid4()
        self.collection = collection
        self._values: dict[str, str] = {}
        self._frozen = False

    @property
    def collection_type(self) -> CollectionType:
        return self.collection.type

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> Record:
        """Make the record read-only. Returns self for chaining."""
        self._frozen = True
        return self

    def field(self, name: str) -> str:
        """Get a field value, or an empty string if unset."""
        return self._values.get(name, "")

    def set_field(self, name: str, value: str | Iterable[str] | None) -> None:
        """
        Set a field value.

        Lists are joined with the multi-value delimiter. An empty value
        removes the field.

        Raises:
            FrozenRecordError: If the record is frozen
            KeyError: If the field is not defined in the collection schema
        """
        if self._frozen:
            raise FrozenRecordError(f"Record {self.id} is read-only")
        if name not in self.collection.schema:
            raise KeyError(f"Field '{name}' is not defined for {self.collection.type.value}")

        if value is None:
            text = ""
        elif isinstance(value, str):
            text = value.strip()
        else:
            text = join_values(value)

        if text:
            self._values[name] = text
        else:
            self._values.pop(name, None)

    def fields(self) -> Mapping[str, str]:
        """Read-only view of the set fields."""
        return MappingProxyType(self._values)

    def copy(self, keep_id: bool = False) -> Record:
        """Return an unfrozen copy with the same collection and, unless keep_id, a new identifier."""
        dup = Record(self.collection, self.id if keep_id else None)
        dup._values = dict(self._values)
        return dup

    def __repr__(self) -> str:
        title = self._values.get("title", "")
        return f"Record(id={self.id}, type={self.collection.type.value!r}, title={title!r})"
