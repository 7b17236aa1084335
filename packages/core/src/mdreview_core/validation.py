"""Rules for acceptable comment text and line numbers."""

from __future__ import annotations

from mdreview_core.errors import EmptyTextError, OutOfRangeError


def validate_comment_text(text: str) -> str:
    """Return the trimmed text, or raise EmptyTextError if nothing is left."""
    if not isinstance(text, str) or not text.strip():
        raise EmptyTextError("Comment text cannot be empty or whitespace-only.")
    return text.strip()


def validate_line_number(line_number: int, line_count: int | None = None) -> int:
    """Check a 1-indexed line number.

    The lower bound is always enforced. The upper bound is only checked when
    line_count is given, because a stored line reference can outlive the
    document it was made against.
    """
    # bool is an int subclass; True is not a line number.
    if isinstance(line_number, bool) or not isinstance(line_number, int):
        raise OutOfRangeError(f"Line number must be an integer, got {line_number!r}.")
    if line_number < 1:
        raise OutOfRangeError("Line number must be greater than 0.")
    if line_count is not None and line_number > line_count:
        raise OutOfRangeError(f"Line {line_number} is beyond the end of the document ({line_count} lines).")
    return line_number
