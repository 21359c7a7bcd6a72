"""
kino.de Adapter
===============

Scrapes the German movie site kino.de. The search page lists movies
with start date, genre, director and cast; resolving a result fetches
the movie page for country, running time, FSK rating, distributor,
plot and poster.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote, urljoin

from bs4 import BeautifulSoup, Tag

from catalog_agent.core.enums import CollectionType, FetchKey
from catalog_agent.core.schema import Collection, Record
from catalog_agent.fetch.adapters.base import BaseAdapter
from catalog_agent.fetch.errors import ParseError
from catalog_agent.fetch.http import HttpRequest, HttpResponse
from catalog_agent.fetch.request import FetchRequest

KINO_BASE_URL = "https://www.kino.de/se/"

FSK_RATINGS = ["FSK 0 (DE)", "FSK 6 (DE)", "FSK 12 (DE)", "FSK 16 (DE)", "FSK 18 (DE)"]

_DATE_RX = re.compile(r"\d{2}\.\d{2}\.(\d{4})")
_YEAR_END_RX = re.compile(r"(\d{4})/?$")
_FSK_RX = re.compile(r"ab\s*(\d+)", re.I)

_SPAN_CLASSES = ("movie-startdate", "movie-genre", "movie-director", "movie-cast")


def _text(tag: Tag | None) -> str:
    return tag.get_text(" ", strip=True) if tag is not None else ""


class KinoAdapter(BaseAdapter):
    """Adapter for kino.de movie pages."""

    ADAPTER_NAME = "kino"
    ADAPTER_VERSION = "1.0.0"
    DEFAULT_NAME = "kino.de"

    SEARCH_KEYS = frozenset({FetchKey.TITLE})
    COLLECTION_TYPES = frozenset({CollectionType.VIDEO})

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.base_url = str(self.config.get("Base URL", KINO_BASE_URL))

    def build_search(self, request: FetchRequest) -> HttpRequest:
        return HttpRequest(
            url=urljoin(self.base_url, quote(request.value.strip()) + "/"),
            params={"sp_search_filter": "movie"},
        )

    def parse_search(self, response: HttpResponse, collection: Collection) -> list[Record]:
        if not response.content.strip():
            raise ParseError("Empty search page", self.name)

        soup = BeautifulSoup(response.content, "html.parser")
        records = []
        for link in soup.select("a.movie-link"):
            href = link.get("href")
            title = _text(link)
            if not href or not title:
                continue

            record = Record(collection)
            self.put(record, "title", title)
            spans = self._spans_after(link)

            date_match = _DATE_RX.search(spans.get("movie-startdate", ""))
            year_match = date_match or _YEAR_END_RX.search(str(href))
            self.put(record, "year", year_match.group(1) if year_match else "")

            genre = spans.get("movie-genre", "").replace("Genre:", "")
            self.put(record, "genre", [g.strip() for g in genre.split(",")])

            directors = spans.get("movie-director", "").replace("Von:", "")
            self.put(record, "director", self.normalizer.split_people(directors))

            cast = spans.get("movie-cast", "").replace("Mit:", "").replace(" und weiteren", "")
            self.put(record, "cast", [c.strip() for c in cast.split(",")])

            self.remember_raw(record, urljoin(self.base_url, str(href)))
            records.append(record)
        return records

    def _spans_after(self, link: Tag) -> dict[str, str]:
        """Collect the detail spans that follow a result link, up to the next result."""
        spans: dict[str, str] = {}
        for element in link.find_all_next(["a", "span"]):
            classes = element.get("class") or []
            if element.name == "a" and "movie-link" in classes:
                break
            for name in _SPAN_CLASSES:
                if name in classes and name not in spans:
                    spans[name] = _text(element)
        return spans

    async def resolve_entry(self, record: Record) -> Record:
        url = self.raw_for(record)
        if url:
            response = await self.fetch_http(HttpRequest(url=url))
            self.put(record, "cover", self.parse_detail(record, response.content, url))
        await self.resolve_images(record)
        return record

    def parse_detail(self, record: Record, content: bytes, page_url: str = "") -> str:
        """
        Fill a record from a movie page.

        Returns:
            Poster URL, or an empty string if the page has none
        """
        soup = BeautifulSoup(content, "html.parser")

        facts: dict[str, str] = {}
        for dt in soup.find_all("dt"):
            dd = dt.find_next_sibling("dd")
            if dd is not None:
                facts[_text(dt)] = _text(dd)

        if "Produktionsland" in facts:
            self.put(record, "nationality", self.normalizer.split_people(facts["Produktionsland"]))
        if "Dauer" in facts:
            self.put(record, "running-time", self.normalizer.parse_running_time(facts["Dauer"]))
        if "FSK" in facts:
            record.collection.schema.extend_allowed("certification", FSK_RATINGS)
            match = _FSK_RX.search(facts["FSK"])
            self.set_choice(record, "certification", f"FSK {match.group(1)} (DE)" if match else facts["FSK"])
        if "Filmverleih" in facts:
            self.put(record, "studio", facts["Filmverleih"])

        teaser = soup.find("div", class_="movie-plot-teaser")
        if teaser is not None:
            paragraphs = []
            for sibling in teaser.find_next_siblings():
                if sibling.name in ("h2", "section"):
                    break
                if sibling.name == "p":
                    paragraphs.append(_text(sibling))
            self.put(record, "plot", "\n\n".join(p for p in paragraphs if p))

        meta = soup.find("div", class_="movie-meta")
        if meta is None:
            return ""
        images = meta.find_all("img", src=True)
        title = record.field("title")
        for img in images:
            if f"{title} Poster" in (img.get("alt") or ""):
                return urljoin(page_url, str(img["src"]))
        return urljoin(page_url, str(images[0]["src"])) if images else ""
