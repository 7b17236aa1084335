"""Shared helpers for CLI commands: session lookup, id resolution, warnings."""

from __future__ import annotations

import click
from rich.console import Console

from mdreview_core.errors import CorruptedDataWarning
from mdreview_core.session import ReviewSession

console = Console()

_ID_PREFIX = "comment-"
SHORT_ID_LENGTH = 8


def short_id(comment_id: str) -> str:
    """Display form of a comment id: the first hex characters after `comment-`."""
    if comment_id.startswith(_ID_PREFIX):
        return comment_id[len(_ID_PREFIX) : len(_ID_PREFIX) + SHORT_ID_LENGTH]
    return comment_id


def get_session(ctx: click.Context, require_document: bool = True) -> ReviewSession:
    session = ctx.obj.get("session") if ctx.obj else None
    if session is None:
        raise click.UsageError("Review session is not initialised.")
    if require_document and session.document is None:
        raise click.UsageError("No file loaded. Run `mdreview open <file.md>` first.")
    return session


def resolve_comment_id(session: ReviewSession, ref: str) -> str:
    """Accept a full comment id or any unique prefix of its short form."""
    ids = [c.id for c in session.all_comments()]
    if ref in ids:
        return ref
    matches = [i for i in ids if i.startswith(ref) or short_id(i).startswith(ref)]
    if not matches:
        raise click.UsageError(f"No comment matches {ref!r}.")
    if len(matches) > 1:
        raise click.UsageError(f"{ref!r} matches {len(matches)} comments; use a longer id.")
    return matches[0]


def print_warnings(session: ReviewSession) -> None:
    """Print and clear the session's storage warnings. Never changes the exit code.

    One command can read a corrupted record several times; only the first
    corruption notice is shown.
    """
    seen_corruption = False
    for warning in session.drain_warnings():
        if isinstance(warning, CorruptedDataWarning):
            if seen_corruption:
                continue
            seen_corruption = True
            title = "Storage data corrupted"
        else:
            title = "Storage warning"
        console.print(f"[yellow]{title}:[/yellow] {warning}")
