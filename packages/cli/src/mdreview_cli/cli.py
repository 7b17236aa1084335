"""CLI entry point for mdreview.

Commands:
  open     — load a Markdown file and make it the current document
  status   — show the current document and comment totals
  show     — print the document with per-line comment counts
  add      — attach a comment to a line
  edit     — change a comment's text
  delete   — remove a comment (asks for confirmation)
  list     — list comments, optionally for one line
  export   — write all comments to a Markdown report
  reset    — delete every stored document and comment
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from mdreview_cli.commands.comments import add_cmd, delete_cmd, edit_cmd, list_cmd
from mdreview_cli.commands.document import open_cmd, show_cmd, status_cmd
from mdreview_cli.commands.export import export_cmd
from mdreview_cli.commands.reset import reset_cmd
from mdreview_cli.output import console, print_warnings


def _build_store(config: dict):
    """Instantiate the configured store from .mdreview.yml settings.

    Store selection:
      store: file   → FileStore   (directory, default .mdreview)
      store: sqlite → SQLiteStore (file, default .mdreview.db)
      store: memory → MemoryStore (nothing survives the process)
      store: none   → NoOpStore   (writes are refused and reported)

    This factory lives in cli.py so neither mdreview_core nor mdreview_store
    know about the CLI config format.
    """
    from mdreview_store.errors import StoreUnavailableError
    from mdreview_store.noop import NoOpStore

    store_type = config.get("store", "file")
    store_path = config.get("store_path")
    quota_bytes = config.get("quota_bytes")

    if store_type == "file":
        from mdreview_store.file import FileStore

        return FileStore(directory=store_path or ".mdreview", quota_bytes=quota_bytes)

    if store_type == "sqlite":
        from mdreview_store.sqlite import SQLiteStore

        try:
            return SQLiteStore(db_path=store_path or ".mdreview.db")
        except StoreUnavailableError as e:
            console.print(f"[yellow]{e}. Falling back to no store.[/yellow]")
            return NoOpStore()

    if store_type == "memory":
        from mdreview_store.memory import MemoryStore

        return MemoryStore(quota_bytes=quota_bytes)

    if store_type != "none":
        console.print(f"[yellow]Unknown store type {store_type!r}. Falling back to no store.[/yellow]")
    return NoOpStore()


@click.group()
@click.version_option(
    version=importlib.metadata.version("mdreview"),
    prog_name="mdreview",
)
@click.option(
    "--config",
    "config_path",
    default=".mdreview.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="MDREVIEW_CONFIG",
)
@click.option(
    "--store",
    "store_type",
    type=click.Choice(["file", "sqlite", "memory", "none"]),
    default=None,
    help="Storage backend. Overrides config file.",
)
@click.option("--store-path", default=None, help="Store directory or database file. Overrides config file.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, store_type: str | None, store_path: str | None, verbose: bool):
    """Line-by-line review comments for Markdown files."""
    from mdreview_core.config import load_config
    from mdreview_core.persistence import PersistenceAdapter
    from mdreview_core.session import ReviewSession

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path, cli_overrides={"store": store_type, "store_path": store_path})
    except (ValueError, OSError) as e:
        raise click.UsageError(f"Could not read configuration: {e}")

    store = _build_store(config)
    session = ReviewSession(PersistenceAdapter(store, key=config["storage_key"]))
    # Each invocation is a new process: pick up the document the last one left current.
    session.resume()

    ctx.obj["config"] = config
    ctx.obj["store"] = store
    ctx.obj["session"] = session
    ctx.call_on_close(lambda: print_warnings(session))
    ctx.call_on_close(store.close)


main.add_command(open_cmd)
main.add_command(status_cmd)
main.add_command(show_cmd)
main.add_command(add_cmd)
main.add_command(edit_cmd)
main.add_command(delete_cmd)
main.add_command(list_cmd)
main.add_command(export_cmd)
main.add_command(reset_cmd)
