"""Default field schemas for each collection type."""

from __future__ import annotations

from collections.abc import Callable

from catalog_agent.core.enums import CollectionType, FieldKind
from catalog_agent.core.schema import Collection, Field

GENERAL = "General"
PUBLISHING = "Publishing"
CLASSIFICATION = "Classification"
PERSONAL = "Personal"
PEOPLE = "Other People"
FEATURES = "Features"

ESRB_RATINGS: list[str] = [
    "Unrated",
    "Adults Only",
    "Mature",
    "Teen",
    "Everyone 10+",
    "Everyone",
    "Early Childhood",
    "Pending",
]

GAME_PLATFORMS: list[str] = [
    "Xbox Series X",
    "Xbox One",
    "Xbox 360",
    "Xbox",
    "PlayStation5",
    "PlayStation4",
    "PlayStation3",
    "PlayStation2",
    "PlayStation",
    "PlayStation Portable",
    "PlayStation Vita",
    "Nintendo Switch",
    "Nintendo Wii U",
    "Nintendo Wii",
    "Nintendo 3DS",
    "Nintendo DS",
    "Nintendo 64",
    "Super Nintendo",
    "Nintendo",
    "GameCube",
    "Dreamcast",
    "Game Boy Advance",
    "Game Boy Color",
    "Game Boy",
    "Windows",
    "Mac OS",
    "Linux",
]

VIDEO_CERTIFICATIONS: list[str] = [
    "G (USA)",
    "PG (USA)",
    "PG-13 (USA)",
    "R (USA)",
    "NC-17 (USA)",
    "U (USA)",
]

VIDEO_MEDIA: list[str] = ["DVD", "VHS", "VCD", "Blu-ray", "4K UHD", "Digital"]

BOOK_BINDINGS: list[str] = [
    "Hardback",
    "Paperback",
    "Trade Paperback",
    "E-Book",
    "Magazine",
    "Journal",
]

COMIC_CONDITIONS: list[str] = [
    "Mint",
    "Near Mint",
    "Very Fine",
    "Fine",
    "Very Good",
    "Good",
    "Fair",
    "Poor",
]

_PEOPLE_FLAGS = {"allow_multiple": True, "allow_grouped": True, "allow_completion": True}


def _title() -> Field:
    return Field(name="title", title="Title", kind=FieldKind.TITLE)


def _personal_fields() -> list[Field]:
    return [
        Field(name="rating", title="Rating", category=PERSONAL, kind=FieldKind.RATING, allow_grouped=True),
        Field(name="cover", title="Front Cover", kind=FieldKind.IMAGE),
        Field(name="comments", title="Comments", kind=FieldKind.PARA),
    ]


def book_fields() -> list[Field]:
    return [
        _title(),
        Field(name="subtitle", title="Subtitle", kind=FieldKind.TITLE),
        Field(name="author", title="Author", kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="editor", title="Editor", kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="binding", title="Binding", kind=FieldKind.CHOICE, allowed=list(BOOK_BINDINGS), allow_grouped=True),
        Field(name="publisher", title="Publisher", category=PUBLISHING, allow_grouped=True, allow_completion=True),
        Field(name="edition", title="Edition", category=PUBLISHING, allow_completion=True),
        Field(name="pub_year", title="Publication Year", category=PUBLISHING, kind=FieldKind.NUMBER, allow_grouped=True),
        Field(name="isbn", title="ISBN#", category=PUBLISHING, allow_multiple=True),
        Field(name="lccn", title="LCCN#", category=PUBLISHING),
        Field(name="pages", title="Pages", category=PUBLISHING, kind=FieldKind.NUMBER),
        Field(name="language", title="Language", category=PUBLISHING, **_PEOPLE_FLAGS),
        Field(name="series", title="Series", category=PUBLISHING, kind=FieldKind.TITLE, allow_grouped=True, allow_completion=True),
        Field(name="genre", title="Genre", category=CLASSIFICATION, **_PEOPLE_FLAGS),
        Field(name="keyword", title="Keywords", category=CLASSIFICATION, **_PEOPLE_FLAGS),
        Field(name="plot", title="Plot Summary", kind=FieldKind.PARA),
        Field(name="read", title="Read", category=PERSONAL, kind=FieldKind.BOOL),
        *_personal_fields(),
    ]


def comic_book_fields() -> list[Field]:
    return [
        _title(),
        Field(name="subtitle", title="Subtitle", kind=FieldKind.TITLE),
        Field(name="writer", title="Writer", kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="artist", title="Artist", kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="series", title="Series", kind=FieldKind.TITLE, allow_grouped=True, allow_completion=True),
        Field(name="issue", title="Issue", kind=FieldKind.NUMBER, allow_multiple=True),
        Field(name="publisher", title="Publisher", category=PUBLISHING, allow_grouped=True, allow_completion=True),
        Field(name="edition", title="Edition", category=PUBLISHING, allow_completion=True),
        Field(name="pub_year", title="Publication Year", category=PUBLISHING, kind=FieldKind.NUMBER, allow_grouped=True),
        Field(name="isbn", title="ISBN#", category=PUBLISHING, allow_multiple=True),
        Field(name="lccn", title="LCCN#", category=PUBLISHING),
        Field(name="pages", title="Pages", category=PUBLISHING, kind=FieldKind.NUMBER),
        Field(name="country", title="Country", category=PUBLISHING, **_PEOPLE_FLAGS),
        Field(name="language", title="Language", category=PUBLISHING, **_PEOPLE_FLAGS),
        Field(name="genre", title="Genre", category=CLASSIFICATION, **_PEOPLE_FLAGS),
        Field(name="keyword", title="Keywords", category=CLASSIFICATION, **_PEOPLE_FLAGS),
        Field(name="condition", title="Condition", category=CLASSIFICATION, kind=FieldKind.CHOICE, allowed=list(COMIC_CONDITIONS)),
        Field(name="signed", title="Signed", category=PERSONAL, kind=FieldKind.BOOL),
        Field(name="plot", title="Plot Summary", kind=FieldKind.PARA),
        *_personal_fields(),
    ]


def video_fields() -> list[Field]:
    return [
        _title(),
        Field(name="medium", title="Medium", kind=FieldKind.CHOICE, allowed=list(VIDEO_MEDIA), allow_grouped=True),
        Field(name="year", title="Production Year", kind=FieldKind.NUMBER, allow_grouped=True),
        Field(name="certification", title="Certification", kind=FieldKind.CHOICE, allowed=list(VIDEO_CERTIFICATIONS), allow_grouped=True),
        Field(name="genre", title="Genre", **_PEOPLE_FLAGS),
        Field(name="nationality", title="Nationality", **_PEOPLE_FLAGS),
        Field(name="language", title="Language", **_PEOPLE_FLAGS),
        Field(name="director", title="Director", category=PEOPLE, kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="producer", title="Producer", category=PEOPLE, kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="writer", title="Writer", category=PEOPLE, kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="composer", title="Composer", category=PEOPLE, kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="cast", title="Cast", category=PEOPLE, kind=FieldKind.NAME, **_PEOPLE_FLAGS),
        Field(name="studio", title="Studio", category=PEOPLE, **_PEOPLE_FLAGS),
        Field(name="running-time", title="Running Time", category=FEATURES, kind=FieldKind.NUMBER),
        Field(name="plot", title="Plot Summary", kind=FieldKind.PARA),
        *_personal_fields(),
    ]


def game_fields() -> list[Field]:
    return [
        _title(),
        Field(name="genre", title="Genre", **_PEOPLE_FLAGS),
        Field(name="platform", title="Platform", kind=FieldKind.CHOICE, allowed=list(GAME_PLATFORMS), allow_grouped=True),
        Field(name="certification", title="ESRB Rating", kind=FieldKind.CHOICE, allowed=list(ESRB_RATINGS), allow_grouped=True),
        Field(name="year", title="Release Year", kind=FieldKind.NUMBER, allow_grouped=True),
        Field(name="publisher", title="Publisher", **_PEOPLE_FLAGS),
        Field(name="developer", title="Developer", **_PEOPLE_FLAGS),
        Field(name="completed", title="Completed", category=PERSONAL, kind=FieldKind.BOOL),
        Field(name="description", title="Description", kind=FieldKind.PARA),
        *_personal_fields(),
    ]


DEFAULT_FIELDS: dict[CollectionType, Callable[[], list[Field]]] = {
    CollectionType.BOOK: book_fields,
    CollectionType.COMIC_BOOK: comic_book_fields,
    CollectionType.VIDEO: video_fields,
    CollectionType.GAME: game_fields,
}

DEFAULT_TITLES: dict[CollectionType, str] = {
    CollectionType.BOOK: "My Books",
    CollectionType.COMIC_BOOK: "My Comic Books",
    CollectionType.VIDEO: "My Videos",
    CollectionType.GAME: "My Games",
}


def create_collection(
    collection_type: CollectionType,
    add_default_fields: bool = True,
    title: str = "",
) -> Collection:
    """
    Create a collection of the given type.

    Args:
        collection_type: Type of catalog collection
        add_default_fields: Populate the schema with the type's default fields
        title: Optional collection title

    Returns:
        A new Collection with its own schema
    """
    fields = DEFAULT_FIELDS[collection_type]() if add_default_fields else []
    return Collection(collection_type, fields, title or DEFAULT_TITLES[collection_type])
