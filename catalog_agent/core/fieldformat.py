"""Value conventions shared by records, adapters and the scorer."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

# Multi-valued fields store their values joined by this delimiter
DELIMITER = "; "

_SPLIT_RX = re.compile(r"\s*;\s*")
_PUNCT_RX = re.compile(r"[^\w\s]", re.UNICODE)
_WS_RX = re.compile(r"\s+")


def split_value(value: str | None) -> list[str]:
    """
    Split a multi-valued field into its values.

    Args:
        value: Stored field value

    Returns:
        List of non-empty values, in stored order
    """
    if not value:
        return []
    return [v for v in _SPLIT_RX.split(value.strip()) if v]


def join_values(values: Iterable[str | None]) -> str:
    """Join values into a stored multi-value string, skipping blanks."""
    cleaned = [v.strip() for v in values if v and v.strip()]
    return DELIMITER.join(cleaned)


def fold(text: str) -> str:
    """
    Fold a string for comparison.

    Case-folds, strips diacritics, removes punctuation and
    collapses whitespace.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    stripped = _PUNCT_RX.sub(" ", stripped.casefold())
    return _WS_RX.sub(" ", stripped).strip()


def tokens(value: str | None, multiple: bool) -> frozenset[str]:
    """
    Tokenize a field value for overlap comparison.

    Multi-valued fields produce one token per value; single-valued
    fields produce one token per word.
    """
    if not value:
        return frozenset()
    if multiple:
        folded = (fold(v) for v in split_value(value))
        return frozenset(t for t in folded if t)
    return frozenset(fold(value).split())
