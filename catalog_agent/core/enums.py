"""Enums for catalog collections, fields and fetch requests."""

from enum import Enum


class CollectionType(str, Enum):
    """Catalog collection type."""

    BOOK = "book"
    COMIC_BOOK = "comic_book"
    VIDEO = "video"
    GAME = "game"


class FieldKind(str, Enum):
    """Value format of a catalog field."""

    PLAIN = "plain"
    TITLE = "title"
    NAME = "name"
    DATE = "date"
    NUMBER = "number"
    BOOL = "bool"
    URL = "url"
    IMAGE = "image"
    PARA = "para"
    CHOICE = "choice"
    RATING = "rating"


class FetchKey(str, Enum):
    """Kind of value a search request is keyed on."""

    TITLE = "title"
    KEYWORD = "keyword"
    PERSON = "person"
    IDENTIFIER = "identifier"
    RAW = "raw"


class MessageLevel(str, Enum):
    """Severity of an out-of-band fetch message."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Category of a fetch failure."""

    CONFIGURATION = "configuration"  # Missing or invalid credential
    TRANSPORT = "transport"  # Network, timeout or HTTP status failure
    PARSE = "parse"  # Response not in the expected shape
    PARTIAL = "partial"  # Sub-resource (e.g. cover image) failed
    CONTRACT = "contract"  # Unsupported key, double start


class JobState(str, Enum):
    """Lifecycle state of a fetch job."""

    IDLE = "idle"
    STARTED = "started"
    AWAITING_RESPONSE = "awaiting_response"
    DONE = "done"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.CANCELLED)
