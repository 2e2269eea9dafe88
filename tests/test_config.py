"""Tests for environment-driven settings."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from medclient.client import build_client, build_storage
from medclient.config import ClientSettings, get_setting
from medclient.storage import JsonFileStorage, MemoryStorage


def test_defaults(monkeypatch) -> None:
    for name in ("MEDCLIENT_API_URL", "MEDCLIENT_TIMEOUT", "MEDCLIENT_STORAGE_PATH", "MEDCLIENT_DIAGNOSE_CONNECTION"):
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"{name}_FILE", raising=False)
    settings = ClientSettings.from_env()
    assert settings.api_url == "http://localhost:5000/api"
    assert settings.timeout == 10.0
    assert settings.cache_ttl == 300.0
    assert settings.diagnose_connection is True
    assert isinstance(build_storage(settings), MemoryStorage)


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("MEDCLIENT_API_URL", "https://med.example/api")
    monkeypatch.setenv("MEDCLIENT_MAX_RETRIES", "5")
    monkeypatch.setenv("MEDCLIENT_RETRY_DELAY", "0.5")
    monkeypatch.setenv("MEDCLIENT_DIAGNOSE_CONNECTION", "false")
    monkeypatch.setenv("MEDCLIENT_STORAGE_PATH", str(tmp_path / "session.json"))

    settings = ClientSettings.from_env()

    assert settings.api_url == "https://med.example/api"
    assert settings.max_retries == 5
    assert settings.retry_delay == 0.5
    assert settings.diagnose_connection is False
    assert isinstance(build_storage(settings), JsonFileStorage)


def test_file_variant_takes_precedence(monkeypatch, tmp_path) -> None:
    secret = tmp_path / "api_url"
    secret.write_text("https://from-file.example/api\n")
    monkeypatch.setenv("MEDCLIENT_API_URL", "https://from-env.example/api")
    monkeypatch.setenv("MEDCLIENT_API_URL_FILE", str(secret))
    assert get_setting("MEDCLIENT_API_URL") == "https://from-file.example/api"


def test_missing_file_falls_back_to_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("MEDCLIENT_API_URL", "https://from-env.example/api")
    monkeypatch.setenv("MEDCLIENT_API_URL_FILE", str(tmp_path / "absent"))
    assert get_setting("MEDCLIENT_API_URL") == "https://from-env.example/api"


def test_invalid_values_rejected(monkeypatch) -> None:
    monkeypatch.setenv("MEDCLIENT_TIMEOUT", "0")
    with pytest.raises(ValidationError):
        ClientSettings.from_env()


def test_default_refresh_timeout_covers_refresh_retries() -> None:
    settings = ClientSettings()
    # Four 10s attempts plus 1s, 2s and 4s of backoff.
    assert settings.refresh_budget() == 47.0
    assert settings.refresh_timeout > settings.refresh_budget()


@pytest.mark.asyncio
async def test_short_refresh_timeout_is_reported(caplog) -> None:
    settings = ClientSettings(timeout=10, refresh_timeout=10, max_retries=3)
    with caplog.at_level(logging.WARNING, logger="medclient.client"):
        client = build_client(settings)
    await client.close()
    assert "shorter than 47.0s of refresh retries" in caplog.text
