"""Settings loaded from the environment."""

from __future__ import annotations

import pytest

from core.config import Settings, get_settings


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "DATABASE_URL",
        "LEDGER_SCOPE",
        "LEDGER_MAX_REPREDICTIONS",
        "LEDGER_STALENESS_EXCLUDED",
        "LEDGER_HISTORY_PREFIXES",
    ):
        monkeypatch.delenv(name, raising=False)
    s = Settings.from_env()
    assert s.database_url == "sqlite+aiosqlite:///./ledger.db"
    assert s.scope == "default"
    assert s.max_repredictions is None
    assert s.staleness_excluded == frozenset({"bundesliga-standings.csv"})
    assert s.history_prefixes == ("recent-history-", "home-history-", "away-history-")


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LEDGER_SCOPE", "ehonda-test")
    monkeypatch.setenv("LEDGER_MAX_REPREDICTIONS", "2")
    monkeypatch.setenv("LEDGER_STALENESS_EXCLUDED", "a.csv, b.csv ,")
    monkeypatch.setenv("LEDGER_HISTORY_PREFIXES", "h-")
    s = Settings.from_env()
    assert s.scope == "ehonda-test"
    assert s.max_repredictions == 2
    assert s.staleness_excluded == frozenset({"a.csv", "b.csv"})
    assert s.history_prefixes == ("h-",)


def test_empty_max_repredictions_means_unlimited(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LEDGER_MAX_REPREDICTIONS", "  ")
    assert Settings.from_env().max_repredictions is None


def test_non_integer_max_repredictions_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LEDGER_MAX_REPREDICTIONS", "many")
    with pytest.raises(ValueError, match="LEDGER_MAX_REPREDICTIONS"):
        Settings.from_env()


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch):
    get_settings.cache_clear()
    monkeypatch.setenv("LEDGER_SCOPE", "first")
    first = get_settings()
    monkeypatch.setenv("LEDGER_SCOPE", "second")
    assert get_settings() is first
    get_settings.cache_clear()
