"""
IGDB Adapter
============

Searches the Internet Game Database JSON API for video games.

Search results carry publisher and developer company ids; resolving a
result looks up company names (cached per adapter instance) and
registers the cover image.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from catalog_agent.core.defaults import ESRB_RATINGS
from catalog_agent.core.enums import CollectionType, FetchKey, FieldKind
from catalog_agent.core.schema import Collection, Field, Record
from catalog_agent.fetch.adapters.base import BaseAdapter
from catalog_agent.fetch.errors import FetchError, ParseError
from catalog_agent.fetch.http import HttpRequest, HttpResponse
from catalog_agent.fetch.request import FetchRequest

logger = logging.getLogger(__name__)

IGDB_API_URL = "https://api.igdb.com/v4"
IGDB_MAX_RETURNS_TOTAL = 20

PEGI_RATINGS = ["PEGI 3", "PEGI 7", "PEGI 12", "PEGI 16", "PEGI 18"]

# Genre ids are stable, so they are kept here instead of costing an API call each
_GENRES = {
    2: "Point-and-click",
    4: "Fighting",
    5: "Shooter",
    7: "Music",
    8: "Platform",
    9: "Puzzle",
    10: "Racing",
    11: "Real Time Strategy (RTS)",
    12: "Role-playing (RPG)",
    13: "Simulator",
    14: "Sport",
    15: "Strategy",
    16: "Turn-based strategy (TBS)",
    24: "Tactical",
    25: "Hack and slash/Beat 'em up",
    26: "Quiz/Trivia",
    30: "Pinball",
    31: "Adventure",
    32: "Indie",
    33: "Arcade",
    34: "Visual Novel",
    35: "Card & Board Game",
    36: "MOBA",
}

_PLATFORMS = {
    3: "Linux",
    4: "Nintendo 64",
    5: "Wii",
    6: "PC (Microsoft Windows)",
    7: "PlayStation",
    8: "PlayStation 2",
    9: "PlayStation 3",
    11: "Xbox",
    12: "Xbox 360",
    13: "PC DOS",
    14: "Mac",
    15: "Commodore C64/128",
    16: "Amiga",
    18: "Nintendo Entertainment System (NES)",
    19: "Super Nintendo Entertainment System (SNES)",
    20: "Nintendo DS",
    21: "Nintendo GameCube",
    22: "Game Boy Color",
    23: "Dreamcast",
    24: "Game Boy Advance",
    25: "Amstrad CPC",
    26: "ZX Spectrum",
    27: "MSX",
    29: "Sega Mega Drive/Genesis",
    32: "Sega Saturn",
    33: "Game Boy",
    34: "Android",
    35: "Sega Game Gear",
    37: "Nintendo 3DS",
    38: "PlayStation Portable",
    39: "iOS",
    41: "Wii U",
    46: "PlayStation Vita",
    48: "PlayStation 4",
    49: "Xbox One",
    52: "Arcade",
    59: "Atari 2600",
    64: "Sega Master System",
    130: "Nintendo Switch",
    131: "Nintendo PlayStation",
    167: "PlayStation 5",
    169: "Xbox Series X|S",
    508: "Nintendo Switch 2",
}

# IGDB platform names that have a different name in the catalog
_PLATFORM_NAMES = {
    "Nintendo Entertainment System (NES)": "Nintendo",
    "Super Nintendo Entertainment System (SNES)": "Super Nintendo",
    "Nintendo PlayStation": "PlayStation",
    "PlayStation 2": "PlayStation2",
    "PlayStation 3": "PlayStation3",
    "PlayStation 4": "PlayStation4",
    "PlayStation 5": "PlayStation5",
    "Wii": "Nintendo Wii",
    "Wii U": "Nintendo Wii U",
    "Nintendo GameCube": "GameCube",
    "PC (Microsoft Windows)": "Windows",
    "Mac": "Mac OS",
    "Xbox Series X|S": "Xbox Series X",
}


@dataclass(frozen=True)
class IgdbTables:
    """Read-only IGDB code tables."""

    genres: Mapping[int, str]
    platforms: Mapping[int, str]
    esrb: Mapping[str, str]
    pegi: Mapping[str, str]


_tables: IgdbTables | None = None
_tables_lock = threading.Lock()


def _build_tables() -> IgdbTables:
    # ESRB codes 1-7 count down the catalog's list: 1 is Pending, 7 is Adults Only
    esrb = {str(code): ESRB_RATINGS[8 - code] for code in range(1, 8)}
    pegi = {str(code): rating for code, rating in enumerate(PEGI_RATINGS, start=1)}
    platforms = {pid: _PLATFORM_NAMES.get(name, name) for pid, name in _PLATFORMS.items()}
    return IgdbTables(
        genres=MappingProxyType(dict(_GENRES)),
        platforms=MappingProxyType(platforms),
        esrb=MappingProxyType(esrb),
        pegi=MappingProxyType(pegi),
    )


def lookup_tables() -> IgdbTables:
    """Get the IGDB code tables, building them on first use."""
    global _tables
    if _tables is None:
        with _tables_lock:
            if _tables is None:
                _tables = _build_tables()
    return _tables


def _map_value(data: Mapping[str, Any], *keys: str) -> str:
    """Walk nested mappings and return the final value as a string."""
    value: Any = data
    for key in keys:
        if not isinstance(value, Mapping):
            return ""
        value = value.get(key)
    if value is None:
        return ""
    return str(value)


class IgdbAdapter(BaseAdapter):
    """Adapter for the Internet Game Database (IGDB.com)."""

    ADAPTER_NAME = "igdb"
    ADAPTER_VERSION = "1.0.0"
    DEFAULT_NAME = "Internet Game Database (IGDB.com)"

    SEARCH_KEYS = frozenset({FetchKey.KEYWORD})
    COLLECTION_TYPES = frozenset({CollectionType.GAME})
    OPTIONAL_FIELDS = {
        "pegi": "PEGI Rating",
        "igdb": "IGDB Link",
    }
    REQUIRED_CONFIG = ("Client ID", "API Key")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.api_url = str(self.config.get("API URL", IGDB_API_URL)).rstrip("/")
        self._company_names: dict[str, str] = {}

    def optional_field(self, name: str) -> Field:
        if name == "pegi":
            return Field(name="pegi", title="PEGI Rating", kind=FieldKind.CHOICE, allowed=list(PEGI_RATINGS))
        if name == "igdb":
            return Field(name="igdb", title="IGDB Link", kind=FieldKind.URL)
        return super().optional_field(name)

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Client-ID": str(self.config.get("Client ID", "")),
            "Authorization": f"Bearer {self.config.get('API Key', '')}",
        }

    def build_search(self, request: FetchRequest) -> HttpRequest:
        return HttpRequest(
            url=f"{self.api_url}/games/",
            params={
                "search": request.value,
                "fields": "*",
                "limit": str(IGDB_MAX_RETURNS_TOTAL),
            },
            headers=self._headers(),
        )

    def parse_search(self, response: HttpResponse, collection: Collection) -> list[Record]:
        data = response.json()
        if not isinstance(data, list):
            raise ParseError("Unexpected IGDB response, expected a list of games", self.name)

        records = []
        for item in data:
            if not isinstance(item, Mapping):
                continue
            record = Record(collection)
            self.populate_record(record, item)
            self.remember_raw(record, {
                "publishers": [str(c) for c in item.get("publishers") or []],
                "developers": [str(c) for c in item.get("developers") or []],
            })
            records.append(record)
        return records

    def populate_record(self, record: Record, data: Mapping[str, Any]) -> None:
        """Map one IGDB game object onto a record."""
        tables = lookup_tables()

        self.put(record, "title", _map_value(data, "name"))
        self.put(record, "description", _map_value(data, "summary"))
        self.put(record, "certification", tables.esrb.get(_map_value(data, "esrb", "rating"), ""))

        cover = _map_value(data, "cover", "url")
        if cover.startswith("//"):
            cover = "https:" + cover
        self.put(record, "cover", cover)

        genres = [tables.genres[g] for g in data.get("genres") or [] if g in tables.genres]
        self.put(record, "genre", genres)

        releases = data.get("release_dates") or []
        if releases and isinstance(releases[0], Mapping):
            # Only the first release is used
            release = releases[0]
            self.put(record, "year", _map_value(release, "y"))
            platform = tables.platforms.get(release.get("platform"))
            if platform:
                self.set_choice(record, "platform", platform)

        self.put(record, "pegi", tables.pegi.get(_map_value(data, "pegi", "rating"), ""))
        self.put(record, "igdb", _map_value(data, "url"))

    async def resolve_entry(self, record: Record) -> Record:
        companies = self.raw_for(record) or {}

        if not record.field("publisher"):
            names = [await self.company_name(cid) for cid in companies.get("publishers", [])]
            self.put(record, "publisher", names)
        if not record.field("developer"):
            names = [await self.company_name(cid) for cid in companies.get("developers", [])]
            self.put(record, "developer", names)

        await self.resolve_images(record)
        return record

    async def company_name(self, company_id: str) -> str:
        """
        Look up a company name by id.

        Names are cached for the lifetime of the adapter. Lookup failures
        are logged and yield an empty name.
        """
        if company_id in self._company_names:
            return self._company_names[company_id]

        request = HttpRequest(
            url=f"{self.api_url}/companies/{company_id}",
            params={"fields": "*"},
            headers=self._headers(),
        )
        try:
            data = (await self.fetch_http(request)).json()
        except FetchError as e:
            logger.warning(f"{self.name}: company {company_id} lookup failed: {e}")
            return ""

        name = _map_value(data[0], "name") if isinstance(data, list) and data else ""
        self._company_names[company_id] = name
        return name

    def update_request(self, record: Record) -> FetchRequest:
        title = record.field("title")
        if title:
            return FetchRequest(FetchKey.KEYWORD, title, CollectionType.GAME)
        return FetchRequest.empty()
