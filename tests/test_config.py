"""Tests for settings defaults and environment overrides."""

from tasksync.config import DEFAULT_BASE_URL, DEFAULT_SEED_PROJECTS, SyncSettings


def test_defaults():
    settings = SyncSettings()

    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.max_retries == 3
    assert settings.rate_limit_base_delay == 1.0
    assert settings.network_retry_delay == 2.0
    assert len(settings.seed_projects) == 3
    assert settings.seed_projects is DEFAULT_SEED_PROJECTS


def test_from_env(monkeypatch):
    monkeypatch.setenv("TASKSYNC_BASE_URL", "https://api.example.org")
    monkeypatch.setenv("TASKSYNC_TIMEOUT", "30")

    settings = SyncSettings.from_env()

    assert settings.base_url == "https://api.example.org"
    assert settings.request_timeout == 30.0


def test_from_env_ignores_bad_timeout(monkeypatch):
    monkeypatch.delenv("TASKSYNC_BASE_URL", raising=False)
    monkeypatch.setenv("TASKSYNC_TIMEOUT", "soon")

    settings = SyncSettings.from_env()

    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.request_timeout == 15.0
