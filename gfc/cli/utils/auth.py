"""Credential and engine helpers for CLI commands."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from ...api.client import GravityFormsClient
from ...cache.store import FormStore
from ...config import Config, load_config
from ...exceptions import ConfigurationError
from ...services.circuit_breaker import CircuitBreaker
from ...services.prober import Prober
from ...services.sync import SyncOrchestrator

console = Console()


def get_config() -> Config:
    """Load configuration, exiting with a readable message when it is invalid."""
    try:
        return load_config()
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(2) from e


def get_api_credentials(
    config: Config,
    base_url: str | None = None,
    consumer_key: str | None = None,
    consumer_secret: str | None = None,
) -> tuple[str, str, str]:
    """Get API credentials from parameters or environment/prompts.

    Args:
        config: Loaded configuration
        base_url: Optional site URL override
        consumer_key: Optional consumer key override
        consumer_secret: Optional consumer secret override

    Returns:
        Tuple of (base_url, consumer_key, consumer_secret)

    Note:
        Credentials are never written to disk.
    """
    final_base_url = base_url or config.base_url
    if not final_base_url:
        final_base_url = typer.prompt("Gravity Forms site URL")

    final_key = consumer_key
    if not final_key and config.consumer_key:
        final_key = config.consumer_key.get_secret_value()
    if not final_key:
        final_key = typer.prompt("Consumer key")

    final_secret = consumer_secret
    if not final_secret and config.consumer_secret:
        final_secret = config.consumer_secret.get_secret_value()
    if not final_secret:
        final_secret = typer.prompt("Consumer secret", hide_input=True, confirmation_prompt=False)

    return final_base_url, final_key, final_secret


def with_api_client(base_url: str, consumer_key: str, consumer_secret: str) -> GravityFormsClient:
    """Build an API client; use it with a regular 'with' statement."""
    return GravityFormsClient(base_url, consumer_key, consumer_secret)


@contextmanager
def open_store(db_path: Path) -> Iterator[FormStore]:
    """Open the cache store for the duration of a command."""
    store = FormStore(db_path)
    store.init()
    try:
        yield store
    finally:
        store.close()


def build_orchestrator(store: FormStore) -> SyncOrchestrator:
    """Wire a sync engine onto an open store."""
    prober = Prober(store, CircuitBreaker())
    return SyncOrchestrator(store, prober)
