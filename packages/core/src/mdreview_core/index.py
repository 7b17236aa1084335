"""Comment index: line number -> comments on that line.

Every transform is a plain function that returns a new CommentIndex and
leaves its argument untouched, so a failed operation can never leave a
half-applied change behind.

Invariants:
  - a line key exists only while it has at least one comment;
  - a comment id appears at most once across the whole index;
  - readers get comments oldest-first by created_at, ties in insertion order,
    whatever order they were stored in.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace as _replace_fields
from datetime import datetime

from mdreview_core.errors import CommentNotFoundError
from mdreview_core.models import CommentRecord, ensure_utc, utc_now
from mdreview_core.validation import validate_comment_text, validate_line_number


class CommentIndex(Mapping):
    """Read-only mapping of line number to the tuple of comments stored for it.

    Item access returns storage order; use for_line() and flatten() for the
    chronological view.
    """

    __slots__ = ("_lines",)

    def __init__(self, lines: Mapping[int, Iterable[CommentRecord]] | None = None):
        self._lines: dict[int, tuple[CommentRecord, ...]] = {}
        for line_number, comments in (lines or {}).items():
            comments = tuple(comments)
            if comments:
                self._lines[line_number] = comments

    def __getitem__(self, line_number: int) -> tuple[CommentRecord, ...]:
        return self._lines[line_number]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._lines))

    def __len__(self) -> int:
        return len(self._lines)

    def __repr__(self) -> str:
        return f"CommentIndex(lines={sorted(self._lines)}, comments={count(self)})"


EMPTY = CommentIndex()


def _chronological(comments: Iterable[CommentRecord]) -> list[CommentRecord]:
    # sorted() is stable, so equal timestamps keep insertion order.
    return sorted(comments, key=lambda c: c.created_at)


def _new_comment_id() -> str:
    return f"comment-{uuid.uuid4().hex}"


def create(line_number: int, text: str, now: datetime | None = None) -> CommentRecord:
    """Build a new comment. Nothing is inserted; callers pass it to insert()."""
    text = validate_comment_text(text)
    validate_line_number(line_number)
    stamp = ensure_utc(now) if now is not None else utc_now()
    return CommentRecord(
        id=_new_comment_id(),
        line_number=line_number,
        text=text,
        created_at=stamp,
        updated_at=stamp,
    )


def insert(index: CommentIndex, comment: CommentRecord) -> CommentIndex:
    """Append comment to its line, creating the line key if needed."""
    if find(index, comment.id) is not None:
        raise ValueError(f"Comment {comment.id!r} is already in the index.")
    lines = dict(index.items())
    lines[comment.line_number] = lines.get(comment.line_number, ()) + (comment,)
    return CommentIndex(lines)


def replace(index: CommentIndex, comment_id: str, new_text: str, now: datetime | None = None) -> CommentIndex:
    """Change the text of one comment.

    Only text and updated_at change; updated_at never goes below created_at
    even if the clock handed to us is behind.
    """
    text = validate_comment_text(new_text)
    stamp = ensure_utc(now) if now is not None else utc_now()

    lines = dict(index.items())
    for line_number, comments in lines.items():
        for pos, comment in enumerate(comments):
            if comment.id == comment_id:
                updated = _replace_fields(comment, text=text, updated_at=max(stamp, comment.created_at))
                lines[line_number] = comments[:pos] + (updated,) + comments[pos + 1 :]
                return CommentIndex(lines)
    raise CommentNotFoundError(f"Comment {comment_id!r} not found.")


def remove(index: CommentIndex, comment_id: str) -> CommentIndex:
    """Drop one comment, and its line key if that was the line's last comment."""
    lines = dict(index.items())
    for line_number, comments in lines.items():
        kept = tuple(c for c in comments if c.id != comment_id)
        if len(kept) != len(comments):
            lines[line_number] = kept  # CommentIndex drops it if empty
            return CommentIndex(lines)
    raise CommentNotFoundError(f"Comment {comment_id!r} not found.")


def for_line(index: CommentIndex, line_number: int) -> list[CommentRecord]:
    return _chronological(index.get(line_number, ()))


def flatten(index: CommentIndex) -> list[CommentRecord]:
    """All comments, oldest first."""
    return _chronological(c for line_number in index for c in index[line_number])


def find(index: CommentIndex, comment_id: str) -> CommentRecord | None:
    for comments in index.values():
        for comment in comments:
            if comment.id == comment_id:
                return comment
    return None


def count(index: CommentIndex) -> int:
    return sum(len(comments) for comments in index.values())


def from_records(records: Iterable[CommentRecord]) -> CommentIndex:
    """Regroup a flat list of comments by line number.

    Later duplicates of an id already seen are dropped.
    """
    lines: dict[int, list[CommentRecord]] = {}
    seen: set[str] = set()
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        lines.setdefault(record.line_number, []).append(record)
    return CommentIndex(lines)
