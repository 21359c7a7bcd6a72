"""Exceptions raised by the fetch pipeline and its adapters."""

from __future__ import annotations

from catalog_agent.core.enums import ErrorKind


class FetchError(Exception):
    """Base class for adapter failures reported as fetch messages."""

    kind: ErrorKind = ErrorKind.PARSE

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.source = source


class ConfigurationError(FetchError):
    """A required credential or setting is missing or invalid."""

    kind = ErrorKind.CONFIGURATION


class TransportError(FetchError):
    """Network, timeout or HTTP status failure."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, source: str = "", status_code: int = 0) -> None:
        super().__init__(message, source)
        self.status_code = status_code


class ParseError(FetchError):
    """A response arrived but was empty or not in the expected shape."""

    kind = ErrorKind.PARSE


class ContractError(FetchError):
    """A request the adapter does not support, such as an unknown search key."""

    kind = ErrorKind.CONTRACT
