"""
tests/test_config.py -- Startup configuration checks (core/config.py).

Covers:
  - missing SECRET_KEY is a ConfigurationError at load/app-build time
  - short SECRET_KEY rejected
  - the error message never echoes the secret value
  - environment variables populate Settings
"""

from __future__ import annotations

import pytest

from api.main import create_app
from core.config import ConfigurationError, get_settings, load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    # Keep a developer's .env out of these tests.
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_missing_secret_is_fatal() -> None:
    with pytest.raises(ConfigurationError, match="SECRET_KEY is required"):
        load_settings()


def test_create_app_without_secret_fails_at_build_time() -> None:
    with pytest.raises(ConfigurationError):
        create_app()


def test_short_secret_rejected_without_echo(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "too-short-secret")
    with pytest.raises(ConfigurationError) as exc:
        load_settings()
    assert "too-short-secret" not in str(exc.value)
    assert "32 characters" in str(exc.value)


def test_env_values_loaded(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "x" * 40)
    monkeypatch.setenv("BCRYPT_ROUNDS", "10")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///elsewhere.db")
    settings = load_settings()
    assert settings.bcrypt_rounds == 10
    assert settings.database_url == "sqlite:///elsewhere.db"
    assert settings.max_upload_bytes == 1024 * 1024


def test_bcrypt_rounds_bounds() -> None:
    with pytest.raises(ConfigurationError):
        load_settings(secret_key="x" * 40, bcrypt_rounds=3)


def test_overrides_win_over_environment(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "e" * 40)
    assert load_settings(secret_key="o" * 40).secret_key == "o" * 40
