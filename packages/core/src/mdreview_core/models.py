"""Review data models.

Both records are frozen: an update produces a new CommentRecord via
dataclasses.replace(), and a document is never edited after it is loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class CommentRecord:
    """A single annotation attached to one line of a document."""

    id: str
    line_number: int  # 1-indexed
    text: str  # stored trimmed
    created_at: datetime
    updated_at: datetime

    @property
    def edited(self) -> bool:
        return self.updated_at != self.created_at


@dataclass(frozen=True)
class DocumentRecord:
    """A loaded text document.

    `lines` is derived from `raw_text` once, at load time, and kept alongside
    it so exports can quote a line without re-splitting the text.
    """

    id: str
    name: str
    raw_text: str
    lines: tuple[str, ...]
    loaded_at: datetime = field(default_factory=utc_now)

    @property
    def line_count(self) -> int:
        return len(self.lines)
