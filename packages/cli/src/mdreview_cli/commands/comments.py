"""add / edit / delete / list commands — manage comments on the current document."""

from __future__ import annotations

import click
from rich.markup import escape
from rich.table import Table

from mdreview_cli.output import console, get_session, resolve_comment_id, short_id


def _report(result, done: str) -> None:
    if result.persisted:
        console.print(f"[green]{done}[/green]")
    else:
        console.print(f"[yellow]{done} (not saved to storage)[/yellow]")


@click.command("add")
@click.argument("line", type=int)
@click.argument("text")
@click.pass_context
def add_cmd(ctx, line: int, text: str):
    """Attach TEXT as a comment on LINE (1-indexed)."""
    from mdreview_core.errors import EmptyTextError, OutOfRangeError

    session = get_session(ctx)
    try:
        result = session.add_comment(line, text)
    except (EmptyTextError, OutOfRangeError) as e:
        raise click.UsageError(str(e))
    _report(result, f"Comment {short_id(result.comment.id)} added to line {line}")


@click.command("edit")
@click.argument("comment_ref")
@click.argument("text")
@click.pass_context
def edit_cmd(ctx, comment_ref: str, text: str):
    """Replace the text of a comment. COMMENT_REF is an id or unique id prefix."""
    from mdreview_core.errors import EmptyTextError

    session = get_session(ctx)
    comment_id = resolve_comment_id(session, comment_ref)
    session.begin_edit(comment_id)
    try:
        result = session.save_edit(text)
    except EmptyTextError as e:
        session.cancel_edit()
        raise click.UsageError(str(e))
    _report(result, f"Comment {short_id(comment_id)} updated")


@click.command("delete")
@click.argument("comment_ref")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def delete_cmd(ctx, comment_ref: str, yes: bool):
    """Delete a comment. COMMENT_REF is an id or unique id prefix."""
    session = get_session(ctx)
    comment_id = resolve_comment_id(session, comment_ref)
    comment = session.request_delete(comment_id)

    if not yes and not click.confirm(f"Delete comment on line {comment.line_number}: {comment.text!r}?"):
        session.cancel_delete()
        console.print("Cancelled.")
        return

    result = session.confirm_delete()
    _report(result, f"Comment {short_id(comment_id)} deleted")


@click.command("list")
@click.option("--line", "line_number", type=int, default=None, help="Only show comments on this line.")
@click.pass_context
def list_cmd(ctx, line_number: int | None):
    """List comments on the current document, oldest first."""
    session = get_session(ctx)
    comments = session.comments_for_line(line_number) if line_number is not None else session.all_comments()
    if not comments:
        console.print("[yellow]No comments found.[/yellow]")
        return

    table = Table(title=f"Comments — {escape(session.document.name)}", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold", width=8)
    table.add_column("Line", justify="right", width=6)
    table.add_column("Comment", max_width=60)
    table.add_column("Created", width=19)
    table.add_column("Updated", width=19)

    for c in comments:
        table.add_row(
            short_id(c.id),
            str(c.line_number),
            escape(c.text),
            c.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            c.updated_at.strftime("%Y-%m-%d %H:%M:%S") if c.edited else "",
        )

    console.print(table)
    console.print(f"{len(comments)} comment(s)")
