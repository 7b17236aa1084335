"""reset command — delete every stored document and comment."""

from __future__ import annotations

import click

from mdreview_cli.output import console, get_session


@click.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def reset_cmd(ctx, yes: bool):
    """Clear all stored review data, for every document."""
    session = get_session(ctx, require_document=False)
    if not yes and not click.confirm("Delete all stored documents and comments?"):
        console.print("Cancelled.")
        return

    result = session.reset_all()
    if result.persisted:
        console.print("[green]All review data cleared.[/green]")
    else:
        console.print("[yellow]Session cleared, but stored data could not be removed.[/yellow]")
