"""Shared fixtures for the GFC test suite."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from gfc.cache.store import FormStore
from gfc.exceptions import APIError, FormNotFoundError
from gfc.services.circuit_breaker import CircuitBreaker
from gfc.services.prober import Prober
from gfc.services.sync import SyncOrchestrator


def make_form(form_id: int, title: str | None = None, active: bool = True, trash: bool = False) -> dict[str, Any]:
    """Raw form payload shaped like the Gravity Forms API."""
    return {
        "id": str(form_id),
        "title": title or f"Form {form_id}",
        "is_active": "1" if active else "0",
        "is_trash": "1" if trash else "0",
        "entries": "0",
        "fields": [],
    }


class FakeRemote:
    """In-memory stand-in for the Gravity Forms API.

    The listing only returns active, untrashed forms; lookups by ID return any
    form. ``failures`` maps IDs to exceptions raised on lookup.
    """

    def __init__(self, forms: list[dict[str, Any]] | None = None) -> None:
        self.forms = {int(form["id"]): form for form in forms or []}
        self.failures: dict[int, Exception] = {}
        self.fetch_calls: list[int] = []
        self.list_calls = 0

    def list_forms(self) -> dict[str, Any]:
        self.list_calls += 1
        return {
            str(form_id): {"id": form["id"], "title": form["title"], "entries": form["entries"]}
            for form_id, form in self.forms.items()
            if form["is_active"] == "1" and form["is_trash"] == "0"
        }

    def get_form(self, form_id: int) -> dict[str, Any]:
        self.fetch_calls.append(form_id)
        if form_id in self.failures:
            raise self.failures[form_id]
        if form_id not in self.forms:
            raise FormNotFoundError(form_id)
        return dict(self.forms[form_id])


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def failing_fetch(form_id: int) -> dict[str, Any]:
    raise APIError(500, f"Server error fetching form {form_id}")


@pytest.fixture
def store(tmp_path):
    form_store = FormStore(tmp_path / "forms-cache.db")
    form_store.init()
    yield form_store
    form_store.close()


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def prober(store, sleeps):
    return Prober(store, CircuitBreaker(), sleep=sleeps.append, base_delay=0.001, max_delay=0.01, max_jitter=0)


@pytest.fixture
def orchestrator(store, prober):
    return SyncOrchestrator(store, prober)
