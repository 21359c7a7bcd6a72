"""Out-of-band messages reported by fetch jobs."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from catalog_agent.core.enums import ErrorKind, MessageLevel


@dataclass(frozen=True)
class FetchMessage:
    """A user-facing note about one source, such as a failure or warning."""

    source: str
    level: MessageLevel
    text: str
    kind: ErrorKind | None = None

    def __str__(self) -> str:
        return f"[{self.source}] {self.level.value}: {self.text}"


MessageCallback = Callable[[FetchMessage], None]
