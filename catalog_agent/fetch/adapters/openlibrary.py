"""
Open Library Adapter
====================

Searches the Open Library search API for books and comic books. Search
results already carry the full record, so resolving only registers the
cover image.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from catalog_agent.core.enums import CollectionType, FetchKey, FieldKind
from catalog_agent.core.fieldformat import split_value
from catalog_agent.core.schema import Collection, Field, Record
from catalog_agent.fetch.adapters.base import BaseAdapter
from catalog_agent.fetch.errors import ParseError
from catalog_agent.fetch.http import HttpRequest, HttpResponse
from catalog_agent.fetch.request import FetchRequest

OPENLIBRARY_URL = "https://openlibrary.org"
OPENLIBRARY_COVER_URL = "https://covers.openlibrary.org/b/id/{cover_id}-L.jpg"
OPENLIBRARY_MAX_RETURNS_TOTAL = 20

MAX_ISBNS = 10
MAX_KEYWORDS = 10

_ISBN_RX = re.compile(r"^(?:\d{9}[\dX]|\d{13})$")


class OpenLibraryAdapter(BaseAdapter):
    """Adapter for OpenLibrary.org."""

    ADAPTER_NAME = "openlibrary"
    ADAPTER_VERSION = "1.0.0"
    DEFAULT_NAME = "Open Library"

    SEARCH_KEYS = frozenset({FetchKey.TITLE, FetchKey.PERSON, FetchKey.IDENTIFIER, FetchKey.KEYWORD})
    COLLECTION_TYPES = frozenset({CollectionType.BOOK, CollectionType.COMIC_BOOK})
    OPTIONAL_FIELDS = {
        "openlibrary": "Open Library Link",
    }

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.api_url = str(self.config.get("API URL", OPENLIBRARY_URL)).rstrip("/")

    def optional_field(self, name: str) -> Field:
        if name == "openlibrary":
            return Field(name="openlibrary", title="Open Library Link", kind=FieldKind.URL)
        return super().optional_field(name)

    def build_search(self, request: FetchRequest) -> HttpRequest:
        value = request.value.strip()
        if request.key == FetchKey.TITLE:
            params = {"title": value}
        elif request.key == FetchKey.PERSON:
            params = {"author": value}
        elif request.key == FetchKey.IDENTIFIER:
            digits = re.sub(r"[\s\-]", "", value).upper()
            params = {"isbn": digits} if _ISBN_RX.match(digits) else {"lccn": value}
        else:
            params = {"q": value}
        params["limit"] = str(OPENLIBRARY_MAX_RETURNS_TOTAL)
        return HttpRequest(url=f"{self.api_url}/search.json", params=params)

    def parse_search(self, response: HttpResponse, collection: Collection) -> list[Record]:
        data = response.json()
        if not isinstance(data, Mapping) or not isinstance(data.get("docs"), list):
            raise ParseError("Unexpected Open Library response, no docs list", self.name)

        records = []
        for doc in data["docs"]:
            if not isinstance(doc, Mapping) or not doc.get("title"):
                continue
            record = Record(collection)
            self.populate_record(record, doc)
            records.append(record)
        return records

    def populate_record(self, record: Record, doc: Mapping[str, Any]) -> None:
        """Map one Open Library search document onto a record."""
        norm = self.normalizer

        def values(key: str, limit: int | None = None) -> list[str]:
            items = doc.get(key) or []
            if not isinstance(items, list):
                items = [items]
            cleaned = [norm.clean_string(v) for v in items]
            return list(dict.fromkeys(v for v in cleaned if v))[:limit]

        self.put(record, "title", norm.clean_string(doc.get("title")))
        self.put(record, "subtitle", norm.clean_string(doc.get("subtitle")))

        authors = values("author_name")
        if record.collection_type == CollectionType.COMIC_BOOK:
            self.put(record, "writer", authors)
        else:
            self.put(record, "author", authors)

        self.put(record, "publisher", values("publisher", 1))
        year = doc.get("first_publish_year") or (values("publish_year", 1) or [None])[0]
        self.put(record, "pub_year", norm.parse_year(year))

        # ISBN-13 first
        isbns = sorted(values("isbn"), key=lambda v: len(v) != 13)
        self.put(record, "isbn", isbns[:MAX_ISBNS])
        self.put(record, "lccn", values("lccn", 1))

        pages = doc.get("number_of_pages_median")
        self.put(record, "pages", str(pages) if pages else "")
        self.put(record, "language", [norm.normalize_language(code) for code in values("language")])
        self.put(record, "keyword", values("subject", MAX_KEYWORDS))

        cover_id = doc.get("cover_i")
        if cover_id:
            self.put(record, "cover", OPENLIBRARY_COVER_URL.format(cover_id=cover_id))

        key = norm.clean_string(doc.get("key"))
        if key:
            self.put(record, "openlibrary", f"{self.api_url}{key}")

    def update_request(self, record: Record) -> FetchRequest:
        if not self.can_fetch(record.collection_type):
            return FetchRequest.empty()
        isbns = split_value(record.field("isbn"))
        if isbns:
            return FetchRequest(FetchKey.IDENTIFIER, isbns[0], record.collection_type)
        lccn = record.field("lccn")
        if lccn:
            return FetchRequest(FetchKey.IDENTIFIER, lccn, record.collection_type)
        return super().update_request(record)
