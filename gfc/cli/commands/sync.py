"""Sync forms command implementation."""

import logging
from collections.abc import Callable
from typing import Annotated

import typer
from rich.console import Console
from tqdm import tqdm

from gfc.cli.utils import (
    BASE_URL_OPTION,
    DB_PATH_OPTION,
    SyncMode,
    build_orchestrator,
    get_api_credentials,
    get_config,
    open_store,
    with_api_client,
)
from gfc.core.constants import ProgressBarConstants, SyncPhase
from gfc.exceptions import GFCError, SyncError
from gfc.models.probe import ProbeProgress
from gfc.models.sync import SyncOptions, SyncResult
from gfc.services.sync import describe_error

console = Console()
logger = logging.getLogger(__name__)


def _progress_bar() -> tuple[tqdm, Callable[[ProbeProgress], None]]:
    pbar = tqdm(
        desc="Syncing forms",
        unit=" probes",
        mininterval=ProgressBarConstants.MIN_UPDATE_INTERVAL / 1000,
        maxinterval=ProgressBarConstants.MAX_UPDATE_INTERVAL / 1000,
    )

    def on_progress(progress: ProbeProgress) -> None:
        pbar.set_description(f"Syncing forms [{progress.phase}]")
        # Per-probe events carry a total; phase markers do not
        if progress.total is not None and progress.phase != SyncPhase.COMPLETED:
            pbar.update(1)
            pbar.set_postfix({"id": progress.current_id, "found": progress.found_so_far})

    return pbar, on_progress


def _print_result(result: SyncResult) -> None:
    kind = "Full" if result.full_sync else "Incremental"
    console.print(
        f"[green]✓ {kind} sync complete[/green] | "
        f"{result.discovered} discovered | {result.updated} updated | {result.duration / 1000:.1f}s"
    )
    if result.errors:
        console.print(f"[yellow]⚠ {len(result.errors)} probes failed:[/yellow]")
        for error in result.errors[:10]:
            console.print(f"  [dim]{error}[/dim]")
        if len(result.errors) > 10:
            console.print(f"  [dim]... and {len(result.errors) - 10} more[/dim]")


def sync_forms(
    mode: Annotated[
        SyncMode,
        typer.Option("--mode", "-m", help="Sync strategy", case_sensitive=False),
    ] = SyncMode.HYBRID,
    db_path: DB_PATH_OPTION = None,
    base_url: BASE_URL_OPTION = None,
    max_probe_failures: Annotated[
        int | None,
        typer.Option(
            "--max-probe-failures",
            help="Consecutive misses that end the beyond-max scan",
            min=1,
            max=50,
        ),
    ] = None,
) -> None:
    """Synchronize the local forms cache with the remote site.

    Hybrid mode runs a full rescan when the configured interval has elapsed
    since the last one, and an incremental refresh otherwise.
    """
    config = get_config()
    if not config.cache_enabled:
        console.print("[yellow]Cache is disabled (GRAVITY_FORMS_CACHE_ENABLED=false)[/yellow]")
        raise typer.Exit(0)

    base_url, consumer_key, consumer_secret = get_api_credentials(config, base_url)
    pbar, on_progress = _progress_bar()
    options = SyncOptions(
        max_age_seconds=config.cache_max_age_seconds,
        consecutive_failure_threshold=max_probe_failures or config.cache_max_probe_failures,
        on_progress=on_progress,
    )

    try:
        client = with_api_client(base_url, consumer_key, consumer_secret)
        with open_store(db_path or config.cache_db_path) as store, client:
            orchestrator = build_orchestrator(store)
            if mode == SyncMode.FULL:
                result = orchestrator.perform_initial_sync(client.list_forms, client.get_form, options)
            elif mode == SyncMode.INCREMENTAL:
                result = orchestrator.perform_incremental_sync(client.list_forms, client.get_form, options)
            else:
                result = orchestrator.perform_hybrid_sync(
                    client.list_forms, client.get_form, config.full_sync_interval_hours, options
                )
    except SyncError as e:
        pbar.close()
        console.print(f"[red]✗ Sync failed: {describe_error(e)}[/red]")
        raise typer.Exit(1) from e
    except GFCError as e:
        pbar.close()
        logger.error(f"Sync aborted: {e}")
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1) from e

    pbar.close()
    _print_result(result)
