"""
Value Normalizer Module
=======================

Cleans and standardizes raw source values into the canonical forms
used by catalog fields.
"""

from __future__ import annotations

import re
from typing import Any


class Normalizer:
    """
    Normalizes raw source values into canonical field values.

    Handles:
    - Whitespace cleanup and "N/A" placeholders
    - Year extraction from dates in various formats
    - Running time parsing (e.g., "142 min", "2h 22min")
    - Splitting people lists on commas and conjunctions
    - Language code expansion (e.g., "eng" -> "English")
    """

    # Values some sources use for "no data"
    MISSING_VALUES: frozenset[str] = frozenset({"n/a", "na", "none", "unknown", "-"})

    # Open Library / MARC language codes
    LANGUAGE_ALIASES: dict[str, str] = {
        "eng": "English",
        "en": "English",
        "ger": "German",
        "deu": "German",
        "de": "German",
        "fre": "French",
        "fra": "French",
        "fr": "French",
        "spa": "Spanish",
        "es": "Spanish",
        "ita": "Italian",
        "it": "Italian",
        "por": "Portuguese",
        "pt": "Portuguese",
        "dut": "Dutch",
        "nld": "Dutch",
        "nl": "Dutch",
        "jpn": "Japanese",
        "ja": "Japanese",
        "chi": "Chinese",
        "zho": "Chinese",
        "rus": "Russian",
        "swe": "Swedish",
        "dan": "Danish",
        "nor": "Norwegian",
        "fin": "Finnish",
        "pol": "Polish",
        "lat": "Latin",
    }

    YEAR_PATTERN = re.compile(r"\b(1[89]\d{2}|20\d{2})\b")

    RUNTIME_PATTERNS: list[tuple[re.Pattern[str], str]] = [
        (re.compile(r"(\d+)\s*h(?:rs?|ours?)?\s*(\d+)\s*m", re.I), "hm"),
        (re.compile(r"(\d+)\s*h(?:rs?|ours?)?\b", re.I), "h"),
        (re.compile(r"(\d+)\s*(?:min|minutes?|m\b)", re.I), "m"),
        (re.compile(r"^\s*(\d+)\s*$"), "m"),
    ]

    PEOPLE_SEPARATORS = re.compile(r"\s*,\s*|\s+(?:und|and|&)\s+")

    def clean_string(self, value: Any) -> str:
        """Clean and normalize a string value; placeholders become empty."""
        if value is None:
            return ""
        s = re.sub(r"\s+", " ", str(value)).strip()
        if s.lower() in self.MISSING_VALUES:
            return ""
        return s

    def parse_year(self, value: str | int | None) -> str:
        """
        Extract a four-digit year.

        Args:
            value: Year, ISO date, "dd.mm.yyyy", "Mar 1999" and so on

        Returns:
            Year as a string, or empty if none found
        """
        if value is None:
            return ""
        if isinstance(value, int):
            return str(value) if 1800 <= value <= 2099 else ""
        match = self.YEAR_PATTERN.search(value)
        return match.group(1) if match else ""

    def parse_running_time(self, value: str | int | None) -> str:
        """
        Parse a running time into minutes.

        Args:
            value: Running time (e.g., "142 min", "120 Min", "2h 5m", 95)

        Returns:
            Minutes as a string, or empty if parsing fails
        """
        if value is None:
            return ""
        if isinstance(value, int):
            return str(value) if value > 0 else ""

        s = self.clean_string(value)
        for pattern, unit in self.RUNTIME_PATTERNS:
            match = pattern.search(s)
            if not match:
                continue
            if unit == "hm":
                minutes = int(match.group(1)) * 60 + int(match.group(2))
            elif unit == "h":
                minutes = int(match.group(1)) * 60
            else:
                minutes = int(match.group(1))
            return str(minutes) if minutes > 0 else ""
        return ""

    def split_people(self, value: str | list[str] | None) -> list[str]:
        """
        Split a list of names.

        Args:
            value: Names as a list, or a string joined by commas, "and" or "und"

        Returns:
            List of cleaned names, in order, without duplicates
        """
        if not value:
            return []
        parts = value if isinstance(value, list) else self.PEOPLE_SEPARATORS.split(value)
        names = (self.clean_string(p) for p in parts)
        return list(dict.fromkeys(n for n in names if n))

    def normalize_language(self, code: str | None) -> str:
        """
        Expand a language code to its English name.

        Args:
            code: Language code or name; Open Library uses "/languages/eng"

        Returns:
            Language name, or the cleaned input if no alias found
        """
        cleaned = self.clean_string(code)
        if not cleaned:
            return ""
        key = cleaned.rsplit("/", 1)[-1].lower()
        return self.LANGUAGE_ALIASES.get(key, cleaned)
