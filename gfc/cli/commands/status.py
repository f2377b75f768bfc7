"""Cache inspection commands: status, list and clear."""

import logging
from typing import Annotated

import typer
from rich.console import Console

from gfc.cache.staleness import StalenessTracker
from gfc.cache.store import FormStore
from gfc.cli.utils import (
    DB_PATH_OPTION,
    OUTPUT_FORMAT_OPTION,
    OUTPUT_PATH_OPTION,
    OutputFormat,
    build_orchestrator,
    build_records_table,
    get_config,
    handle_json_output,
    open_store,
    records_to_json,
    with_api_client,
)
from gfc.config import Config
from gfc.exceptions import CacheError, GFCError
from gfc.models.sync import SyncOptions

console = Console()
logger = logging.getLogger(__name__)


def _refresh_if_stale(store: FormStore, config: Config) -> None:
    if not (config.base_url and config.consumer_key and config.consumer_secret):
        logger.debug("Auto-sync skipped: API credentials not configured")
        return

    options = SyncOptions(
        max_age_seconds=config.cache_max_age_seconds,
        consecutive_failure_threshold=config.cache_max_probe_failures,
    )
    try:
        with with_api_client(
            config.base_url,
            config.consumer_key.get_secret_value(),
            config.consumer_secret.get_secret_value(),
        ) as client:
            result = build_orchestrator(store).refresh_if_stale(
                client.list_forms, client.get_form, config.cache_max_age_seconds, options
            )
    except CacheError:
        raise
    except GFCError as e:
        # Serve what is cached when the site is unreachable
        logger.warning(f"Auto-sync failed, listing cached forms: {e}")
        return

    if result is not None:
        logger.info(f"Refreshed stale cache: {result.discovered} discovered, {result.updated} updated")


def cache_status(db_path: DB_PATH_OPTION = None) -> None:
    """Show cache health: record counts, sync times and staleness."""
    config = get_config()
    path = db_path or config.cache_db_path

    try:
        with open_store(path) as store:
            stats = store.get_cache_stats()
            tracker = StalenessTracker(store)
            stale = tracker.is_stale(config.cache_max_age_seconds)
            needs_full = tracker.needs_full_sync(config.full_sync_interval_hours)
    except CacheError as e:
        console.print(f"[red]✗ Cache unavailable: {e}[/red]")
        if getattr(e, "corrupted", False):
            console.print("[dim]The database looks corrupted; run 'gfc clear --rebuild' to start over.[/dim]")
        raise typer.Exit(1) from e

    console.print(f"[bold]Cache:[/bold] {path} (schema v{stats.schema_version})")
    console.print(
        f"  Forms: {stats.total_forms} | active {stats.active_count} | "
        f"inactive {stats.inactive_count} | trash {stats.trash_count}"
    )
    last_sync = stats.last_sync.strftime("%Y-%m-%d %H:%M:%S") if stats.last_sync else "never"
    last_full = stats.last_full_sync.strftime("%Y-%m-%d %H:%M:%S") if stats.last_full_sync else "never"
    console.print(f"  Last sync: {last_sync} | last full sync: {last_full}")
    console.print(
        f"  {'[yellow]Stale[/yellow]' if stale else '[green]Fresh[/green]'}"
        f"{' | [yellow]full sync due[/yellow]' if needs_full else ''}"
    )


def list_forms(
    db_path: DB_PATH_OPTION = None,
    active_only: Annotated[bool, typer.Option("--active-only", help="Only show active forms")] = False,
    exclude_trash: Annotated[bool, typer.Option("--exclude-trash", help="Hide trashed forms")] = False,
    output_format: OUTPUT_FORMAT_OPTION = OutputFormat.TABLE,
    output_path: OUTPUT_PATH_OPTION = None,
) -> None:
    """List forms from the local cache.

    With GRAVITY_FORMS_CACHE_AUTO_SYNC enabled and credentials configured, a
    stale cache is refreshed incrementally first; otherwise no remote calls are made.
    """
    config = get_config()
    path = db_path or config.cache_db_path

    try:
        with open_store(path) as store:
            if config.cache_auto_sync:
                _refresh_if_stale(store, config)
            records = store.get_all_records(active_only=active_only, exclude_trash=exclude_trash)
    except CacheError as e:
        console.print(f"[red]✗ Cache unavailable: {e}[/red]")
        raise typer.Exit(1) from e

    if not records:
        console.print("[yellow]No cached forms found.[/yellow]")
        console.print("[dim]Run 'gfc sync' to populate the cache.[/dim]")
        return

    if output_format == OutputFormat.JSON:
        handle_json_output(records, output_path, transformer=records_to_json)
    else:
        console.print(build_records_table(records, title=f"Cached forms ({len(records)})"))


def clear_cache(
    db_path: DB_PATH_OPTION = None,
    rebuild: Annotated[
        bool,
        typer.Option("--rebuild", help="Delete the database file itself (use when it is corrupted)"),
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Invalidate the cache, removing every cached form and sync timestamp."""
    config = get_config()
    path = db_path or config.cache_db_path

    if not yes and not typer.confirm(f"Clear the forms cache at {path}?", default=False):
        raise typer.Exit(0)

    if rebuild:
        for suffix in ("", "-wal", "-shm"):
            candidate = path.with_name(path.name + suffix)
            if candidate.exists():
                candidate.unlink()
        logger.info(f"Deleted cache database {path}")
        console.print(f"[green]✓ Deleted {path}; the next sync rebuilds it[/green]")
        return

    try:
        with open_store(path) as store:
            store.clear()
    except CacheError as e:
        console.print(f"[red]✗ Could not clear cache: {e}[/red]")
        raise typer.Exit(1) from e

    console.print("[green]✓ Cache cleared[/green]")
