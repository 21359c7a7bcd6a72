"""Record similarity scoring for duplicate detection and merging."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from fractions import Fraction
from urllib.parse import urlsplit

from catalog_agent.core.enums import CollectionType, FieldKind
from catalog_agent.core.fieldformat import fold, split_value, tokens
from catalog_agent.core.schema import FieldSchema, Record

# Score for a normalized exact match on an identifier field
IDENTIFIER_MATCH = 100

# Returned by same_entry when any identifier field matches
CERTAIN_MATCH = 100

_ISBN_RX = re.compile(r"[^0-9X]")
_LCCN_RX = re.compile(r"[\s\-]")


def normalize_isbn(value: str) -> str:
    """
    Normalize an ISBN for comparison.

    Strips punctuation and whitespace and converts ISBN-10 values to
    ISBN-13 so both forms of the same number compare equal.
    """
    digits = _ISBN_RX.sub("", value.upper())
    # Only a 9-digit body with a digit or X check character is an ISBN-10
    if len(digits) != 10 or not digits[:9].isdigit():
        return digits
    core = "978" + digits[:9]
    total = sum((1 if i % 2 == 0 else 3) * int(d) for i, d in enumerate(core))
    return core + str((10 - total % 10) % 10)


def normalize_lccn(value: str) -> str:
    """Normalize a Library of Congress control number."""
    return _LCCN_RX.sub("", value).lower()


def normalize_url(value: str) -> str:
    """Normalize a permalink: drop scheme, leading www. and trailing slash."""
    parts = urlsplit(value.strip() if "//" in value else f"//{value.strip()}")
    host = parts.netloc.lower().removeprefix("www.")
    result = host + parts.path.rstrip("/")
    if parts.query:
        result += f"?{parts.query}"
    return result


IDENTIFIER_NORMALIZERS: dict[str, Callable[[str], str]] = {
    "isbn": normalize_isbn,
    "lccn": normalize_lccn,
}


def _field_traits(
    a: Record,
    b: Record,
    field_name: str,
    schema: FieldSchema | None,
) -> tuple[bool, bool]:
    """Return (allow_multiple, is_url), looking at both records so the result is symmetric."""
    schemas = [schema] if schema is not None else [a.collection.schema, b.collection.schema]
    multiple = False
    is_url = False
    for s in schemas:
        f = s.get(field_name)
        if f is not None:
            multiple = multiple or f.allow_multiple
            is_url = is_url or f.kind == FieldKind.URL
    return multiple, is_url


def _identifier_values(value: str, normalizer: Callable[[str], str]) -> set[str]:
    return {n for n in (normalizer(v) for v in split_value(value)) if n}


def _exact_score(
    a: Record | None,
    b: Record | None,
    field_name: str,
    schema: FieldSchema | None = None,
    identifier: bool = False,
) -> Fraction:
    if a is None or b is None:
        return Fraction(0)

    value_a = a.field(field_name)
    value_b = b.field(field_name)
    if not value_a or not value_b:
        return Fraction(0)

    multiple, is_url = _field_traits(a, b, field_name, schema)

    normalizer = IDENTIFIER_NORMALIZERS.get(field_name)
    if normalizer is None and is_url:
        normalizer = normalize_url
    if normalizer is None and identifier:
        normalizer = fold
    if normalizer is not None:
        shared = _identifier_values(value_a, normalizer) & _identifier_values(value_b, normalizer)
        return Fraction(IDENTIFIER_MATCH) if shared else Fraction(0)

    tokens_a = tokens(value_a, multiple)
    tokens_b = tokens(value_b, multiple)
    union = tokens_a | tokens_b
    if not union:
        return Fraction(0)
    return Fraction(len(tokens_a & tokens_b), len(union))


def score(
    a: Record | None,
    b: Record | None,
    field_name: str,
    schema: FieldSchema | None = None,
) -> float:
    """
    Compare one field of two records.

    Identifier fields (ISBN, LCCN, URL permalinks) score
    IDENTIFIER_MATCH on a normalized exact match and 0 otherwise.
    Other fields score the fraction of shared tokens (0.0 - 1.0) after
    case and diacritic folding.

    Args:
        a: First record (may be None)
        b: Second record (may be None)
        field_name: Field to compare
        schema: Schema giving the field's format; defaults to the records' own

    Returns:
        Non-negative score, 0 when either side has no value
    """
    return float(_exact_score(a, b, field_name, schema))


@dataclass(frozen=True)
class MatchRule:
    """Identifier fields and field weights used by same_entry for one collection type."""

    collection_type: CollectionType
    identifier_fields: tuple[str, ...]
    weights: tuple[tuple[str, float], ...] = field(default_factory=tuple)

    def with_weights(self, overrides: Mapping[str, float]) -> MatchRule:
        """
        Return a copy with some weights replaced.

        Fields not already weighted are appended in sorted order.
        """
        merged = [(name, overrides.get(name, weight)) for name, weight in self.weights]
        known = {name for name, _ in self.weights}
        merged.extend((name, overrides[name]) for name in sorted(overrides) if name not in known)
        return MatchRule(self.collection_type, self.identifier_fields, tuple(merged))


DEFAULT_RULES: dict[CollectionType, MatchRule] = {
    CollectionType.BOOK: MatchRule(
        CollectionType.BOOK,
        ("isbn", "lccn"),
        (("title", 3), ("author", 2), ("editor", 1), ("publisher", 1), ("pub_year", 1), ("edition", 1)),
    ),
    CollectionType.COMIC_BOOK: MatchRule(
        CollectionType.COMIC_BOOK,
        ("isbn", "lccn"),
        (
            ("title", 3), ("series", 2), ("writer", 2), ("artist", 1),
            ("issue", 1), ("publisher", 1), ("pub_year", 1),
        ),
    ),
    CollectionType.VIDEO: MatchRule(
        CollectionType.VIDEO,
        ("imdb",),
        (("title", 3), ("year", 2), ("director", 2), ("studio", 1), ("nationality", 1), ("running-time", 1)),
    ),
    CollectionType.GAME: MatchRule(
        CollectionType.GAME,
        ("igdb",),
        (("title", 3), ("platform", 2), ("year", 1), ("publisher", 1), ("developer", 1)),
    ),
}


def get_match_rule(collection_type: CollectionType) -> MatchRule:
    """Get the default match rule for a collection type."""
    return DEFAULT_RULES[collection_type]


def same_entry(
    a: Record | None,
    b: Record | None,
    rule: MatchRule | None = None,
) -> float:
    """
    Score how likely two records describe the same item.

    Any matching identifier field returns CERTAIN_MATCH immediately.
    Otherwise the result is the weighted sum of per-field scores. The
    value is only meaningful relative to other scores; callers apply
    their own thresholds.

    Args:
        a: First record (may be None)
        b: Second record (may be None)
        rule: Match rule; defaults to the rule for the records' collection type

    Returns:
        Non-negative match score, 0 for missing or differently-typed records
    """
    if a is None or b is None:
        return 0.0
    if a.collection_type != b.collection_type:
        return 0.0

    rule = rule or DEFAULT_RULES[a.collection_type]

    for name in rule.identifier_fields:
        if _exact_score(a, b, name, identifier=True) > 0:
            return float(CERTAIN_MATCH)

    total = Fraction(0)
    for name, weight in rule.weights:
        total += Fraction(str(weight)) * _exact_score(a, b, name)
    return float(total)
