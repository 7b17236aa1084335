"""export command — write the current document's comments as a Markdown report."""

from __future__ import annotations

from pathlib import Path

import click

from mdreview_cli.output import console, get_session


@click.command("export")
@click.option(
    "--output",
    "-o",
    "output_path",
    default=None,
    help="Output file. Defaults to <name>-review-<timestamp>.md in the current directory.",
)
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the report instead of writing a file.")
@click.pass_context
def export_cmd(ctx, output_path: str | None, to_stdout: bool):
    """Export all comments on the current document, grouped by line."""
    from mdreview_core.export import export_filename, generate_markdown_export

    session = get_session(ctx)
    snapshot = session.snapshot()
    report = generate_markdown_export(snapshot)

    if to_stdout:
        click.echo(report)
        return

    path = Path(output_path or export_filename(snapshot.document.name))
    try:
        path.write_text(report, encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Could not write {path}: {e}")
    console.print(f"[green]Exported {len(snapshot.comments)} comment(s) to {path}[/green]")
