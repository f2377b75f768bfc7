"""Main CLI entry point for the Gravity Forms cache."""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from gfc.cli.commands.status import cache_status, clear_cache, list_forms
from gfc.cli.commands.sync import sync_forms
from gfc.core.constants import PACKAGE_VERSION

app = typer.Typer(
    name="gfc",
    help="Gravity Forms Cache - keep a complete local mirror of a site's forms",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"gfc {PACKAGE_VERSION}")
        raise typer.Exit()


@app.callback()
def callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit"),
    ] = False,
) -> None:
    """
    Gravity Forms Cache CLI
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


app.command("sync", help="Sync the local cache with the remote site (hybrid, full or incremental)")(sync_forms)
app.command("status", help="Show cache health and staleness")(cache_status)
app.command("list", help="List cached forms, including inactive and trashed ones")(list_forms)
app.command("clear", help="Invalidate the local cache")(clear_cache)


if __name__ == "__main__":
    app()
