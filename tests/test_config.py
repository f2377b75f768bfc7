"""Tests for configuration loading."""

from pathlib import Path

import pytest

from gfc.config import load_config
from gfc.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in (
        "GRAVITY_FORMS_BASE_URL",
        "GRAVITY_FORMS_CONSUMER_KEY",
        "GRAVITY_FORMS_CONSUMER_SECRET",
        "GRAVITY_FORMS_CACHE_ENABLED",
        "GRAVITY_FORMS_CACHE_DB_PATH",
        "GRAVITY_FORMS_CACHE_MAX_AGE_SECONDS",
        "GRAVITY_FORMS_CACHE_MAX_PROBE_FAILURES",
        "GRAVITY_FORMS_CACHE_AUTO_SYNC",
        "GRAVITY_FORMS_CACHE_FULL_SYNC_INTERVAL_HOURS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_config()

    assert config.base_url is None
    assert config.cache_enabled is True
    assert config.cache_db_path == Path("./data/forms-cache.db")
    assert config.cache_max_age_seconds == 3600
    assert config.cache_max_probe_failures == 10
    assert config.cache_auto_sync is True
    assert config.full_sync_interval_hours == 24


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("GRAVITY_FORMS_BASE_URL", "https://forms.example.com")
    monkeypatch.setenv("GRAVITY_FORMS_CONSUMER_KEY", "ck_live")
    monkeypatch.setenv("GRAVITY_FORMS_CONSUMER_SECRET", "cs_live")
    monkeypatch.setenv("GRAVITY_FORMS_CACHE_MAX_AGE_SECONDS", "120")
    monkeypatch.setenv("GRAVITY_FORMS_CACHE_ENABLED", "false")
    monkeypatch.setenv("GRAVITY_FORMS_CACHE_DB_PATH", "/tmp/other.db")

    config = load_config()

    assert config.base_url == "https://forms.example.com"
    assert config.consumer_key.get_secret_value() == "ck_live"
    assert config.consumer_secret.get_secret_value() == "cs_live"
    assert config.cache_max_age_seconds == 120
    assert config.cache_enabled is False
    assert config.cache_db_path == Path("/tmp/other.db")


def test_reads_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("GRAVITY_FORMS_CACHE_MAX_PROBE_FAILURES=4\n")
    assert load_config().cache_max_probe_failures == 4


@pytest.mark.parametrize(
    "name,value",
    [
        ("GRAVITY_FORMS_CACHE_MAX_AGE_SECONDS", "30"),
        ("GRAVITY_FORMS_CACHE_MAX_AGE_SECONDS", "90000"),
        ("GRAVITY_FORMS_CACHE_MAX_PROBE_FAILURES", "0"),
        ("GRAVITY_FORMS_CACHE_MAX_PROBE_FAILURES", "51"),
        ("GRAVITY_FORMS_CACHE_FULL_SYNC_INTERVAL_HOURS", "0"),
    ],
)
def test_out_of_range_values_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_config()
