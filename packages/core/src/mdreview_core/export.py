"""Markdown export of a document's review comments."""

from __future__ import annotations

import re
from datetime import datetime

from mdreview_core.models import ensure_utc, utc_now
from mdreview_core.session import ReviewSnapshot

_MARKDOWN_SUFFIX = re.compile(r"\.(md|markdown)$", re.IGNORECASE)


def _stamp(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%d %H:%M:%S UTC")


def generate_markdown_export(snapshot: ReviewSnapshot, generated_at: datetime | None = None) -> str:
    """Render every comment of the snapshot as a Markdown report, grouped by line.

    Each commented line is quoted in a fenced block followed by its comments
    in creation order; an "Updated" stamp is only shown for edited comments.
    """
    document = snapshot.document
    lines = [
        f"# Review Comments for {document.name}",
        "",
        f"Generated on: {_stamp(generated_at or utc_now())}",
        "",
        "---",
        "",
    ]

    grouped = snapshot.by_line()
    if not grouped:
        lines.append("No comments found.")
        return "\n".join(lines)

    for line_number, comments in grouped:
        content = document.lines[line_number - 1] if line_number <= len(document.lines) else ""
        lines += [f"## Line {line_number}", "", "```", content, "```", "", "**Comments:**", ""]
        for n, comment in enumerate(comments, start=1):
            lines.append(f"{n}. {comment.text}")
            lines.append(f"   - *Created: {_stamp(comment.created_at)}*")
            if comment.edited:
                lines.append(f"   - *Updated: {_stamp(comment.updated_at)}*")
            lines.append("")
        lines += ["---", ""]

    return "\n".join(lines)


def export_filename(original_name: str, now: datetime | None = None) -> str:
    """`notes.md` -> `notes-review-2024-05-01T12-30-00.md`."""
    timestamp = ensure_utc(now or utc_now()).strftime("%Y-%m-%dT%H-%M-%S")
    base = _MARKDOWN_SUFFIX.sub("", original_name)
    return f"{base}-review-{timestamp}.md"
