"""open / status / show commands — load a document and look at it."""

from __future__ import annotations

import click
from rich.markup import escape
from rich.table import Table

from mdreview_cli.output import console, get_session


@click.command("open")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def open_cmd(ctx, path: str):
    """Load a Markdown file and make it the current document.

    Loading always starts a fresh review of that file: comments made on
    earlier loads stay in the store under their own document.
    """
    from mdreview_core.errors import UnsupportedFileError
    from mdreview_core.loader import read_document_file

    config = ctx.obj["config"]
    session = get_session(ctx, require_document=False)

    try:
        name, text = read_document_file(
            path,
            extensions=config.get("extensions") or (".md", ".markdown"),
            max_file_size=config.get("max_file_size"),
        )
    except UnsupportedFileError as e:
        raise click.UsageError(str(e))

    document = session.load_document(name, text)
    console.print(f"[green]File loaded successfully:[/green] {document.name} ({document.line_count} lines)")


@click.command("status")
@click.pass_context
def status_cmd(ctx):
    """Show the current document and how many comments it has."""
    session = get_session(ctx, require_document=False)
    document = session.document
    if document is None:
        console.print("[yellow]No file loaded.[/yellow]")
        return

    commented_lines = len(session.index)
    console.print(f"[bold]{document.name}[/bold]")
    console.print(f"  Document id:  {document.id}")
    console.print(f"  Loaded at:    {document.loaded_at.strftime('%Y-%m-%d %H:%M:%S')} UTC")
    console.print(f"  Lines:        {document.line_count}")
    console.print(f"  Comments:     {session.comment_count()} on {commented_lines} line(s)")


@click.command("show")
@click.option("--start", default=1, show_default=True, help="First line to show.")
@click.option("--end", type=int, default=None, help="Last line to show (default: end of file).")
@click.pass_context
def show_cmd(ctx, start: int, end: int | None):
    """Print the document with line numbers and per-line comment counts."""
    session = get_session(ctx)
    document = session.document

    end = min(end or document.line_count, document.line_count)
    table = Table(title=document.name, show_header=True, header_style="bold cyan", box=None)
    table.add_column("#", justify="right", style="dim", width=6)
    table.add_column("", width=4)
    table.add_column("Line")

    for line_number in range(max(start, 1), end + 1):
        n = len(session.index.get(line_number, ()))
        marker = f"[yellow]{n}[/yellow]" if n else ""
        table.add_row(str(line_number), marker, escape(document.lines[line_number - 1]))
    console.print(table)
