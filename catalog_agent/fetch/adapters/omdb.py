"""
OMDb Adapter
============

Searches the Open Movie Database JSON API for movies and series.

Title searches return a short list (title, year, poster); resolving a
result makes a second request by IMDb id for the full record.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from catalog_agent.core.enums import CollectionType, FetchKey, FieldKind
from catalog_agent.core.schema import Collection, Field, Record
from catalog_agent.fetch.adapters.base import BaseAdapter
from catalog_agent.fetch.errors import ConfigurationError, ParseError
from catalog_agent.fetch.http import HttpRequest, HttpResponse
from catalog_agent.fetch.request import FetchRequest

OMDB_API_URL = "https://www.omdbapi.com/"

IMDB_ID_PATTERN = re.compile(r"\btt\d{7,}\b")

# Credits like "Frank Darabont (screenplay)" keep only the name
_CREDIT_NOTE = re.compile(r"\s*\([^)]*\)")


class OmdbAdapter(BaseAdapter):
    """Adapter for the Open Movie Database (OMDbAPI.com)."""

    ADAPTER_NAME = "omdb"
    ADAPTER_VERSION = "1.0.0"
    DEFAULT_NAME = "The Open Movie Database"

    SEARCH_KEYS = frozenset({FetchKey.TITLE, FetchKey.IDENTIFIER})
    COLLECTION_TYPES = frozenset({CollectionType.VIDEO})
    OPTIONAL_FIELDS = {
        "imdb": "IMDb Link",
        "imdb-rating": "IMDb Rating",
        "awards": "Awards",
    }
    REQUIRED_CONFIG = ("API Key",)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.api_url = str(self.config.get("API URL", OMDB_API_URL))

    def optional_field(self, name: str) -> Field:
        if name == "imdb":
            return Field(name="imdb", title="IMDb Link", kind=FieldKind.URL)
        if name == "imdb-rating":
            return Field(name="imdb-rating", title="IMDb Rating", kind=FieldKind.NUMBER)
        return super().optional_field(name)

    def _request(self, **params: str) -> HttpRequest:
        return HttpRequest(url=self.api_url, params={"apikey": str(self.config.get("API Key", "")), **params})

    def build_search(self, request: FetchRequest) -> HttpRequest:
        if request.key == FetchKey.IDENTIFIER:
            match = IMDB_ID_PATTERN.search(request.value)
            imdb_id = match.group(0) if match else request.value.strip()
            return self._request(i=imdb_id, plot="full")
        return self._request(s=request.value)

    def _check_response(self, data: Any) -> Mapping[str, Any]:
        """
        Raises:
            ConfigurationError: If OMDb rejected the API key
            ParseError: If the body is not an OMDb response object
        """
        if not isinstance(data, Mapping):
            raise ParseError("Unexpected OMDb response", self.name)
        if data.get("Response") == "False":
            error = str(data.get("Error", ""))
            if "api key" in error.lower():
                raise ConfigurationError(f"OMDb rejected the API key: {error}", self.name)
            if "not found" not in error.lower():
                raise ParseError(f"OMDb error: {error}", self.name)
        return data

    def parse_search(self, response: HttpResponse, collection: Collection) -> list[Record]:
        data = self._check_response(response.json())

        if "Search" in data:
            records = []
            for item in data.get("Search") or []:
                if not isinstance(item, Mapping):
                    continue
                record = Record(collection)
                self.populate_record(record, item)
                self.remember_raw(record, {"imdb_id": item.get("imdbID", ""), "full": False})
                records.append(record)
            return records

        if data.get("Title"):
            # Identifier lookups return the full record directly
            record = Record(collection)
            self.populate_record(record, data)
            self.remember_raw(record, {"imdb_id": data.get("imdbID", ""), "full": True})
            return [record]

        return []

    async def resolve_entry(self, record: Record) -> Record:
        raw = self.raw_for(record) or {}
        imdb_id = raw.get("imdb_id", "")
        if imdb_id and not raw.get("full"):
            response = await self.fetch_http(self._request(i=imdb_id, plot="full"))
            data = self._check_response(response.json())
            if data.get("Title"):
                self.populate_record(record, data)
        await self.resolve_images(record)
        return record

    def populate_record(self, record: Record, data: Mapping[str, Any]) -> None:
        """Map an OMDb search item or full record onto a record."""
        norm = self.normalizer

        def value(key: str) -> str:
            return norm.clean_string(data.get(key))

        self.put(record, "title", value("Title"))
        self.put(record, "year", norm.parse_year(value("Year")))
        self.put(record, "cover", value("Poster"))

        rated = value("Rated")
        if rated and rated.upper() not in ("NOT RATED", "UNRATED"):
            self.set_choice(record, "certification", f"{rated} (USA)")

        self.put(record, "running-time", norm.parse_running_time(value("Runtime")))
        self.put(record, "genre", norm.split_people(value("Genre")))
        self.put(record, "director", norm.split_people(value("Director")))
        writers = [_CREDIT_NOTE.sub("", w) for w in norm.split_people(value("Writer"))]
        self.put(record, "writer", list(dict.fromkeys(writers)))
        self.put(record, "cast", norm.split_people(value("Actors")))
        self.put(record, "plot", value("Plot"))
        self.put(record, "language", norm.split_people(value("Language")))
        self.put(record, "nationality", norm.split_people(value("Country")))
        self.put(record, "studio", norm.split_people(value("Production")))

        imdb_id = value("imdbID")
        if imdb_id:
            self.put(record, "imdb", f"https://www.imdb.com/title/{imdb_id}/")
        self.put(record, "imdb-rating", value("imdbRating"))
        self.put(record, "awards", value("Awards"))

    def update_request(self, record: Record) -> FetchRequest:
        match = IMDB_ID_PATTERN.search(record.field("imdb"))
        if match:
            return FetchRequest(FetchKey.IDENTIFIER, match.group(0), CollectionType.VIDEO)
        return super().update_request(record)
