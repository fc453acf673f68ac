"""Settings parsing and the Secrets Manager overlay."""

from __future__ import annotations

import pytest

from bookstore import config
from bookstore.config import Settings, apply_secrets


def test_list_settings_are_split_and_normalised():
    settings = Settings(admin_emails=" Root@Example.com, ,ops@example.com", cors_origins="http://a, http://b")
    assert settings.admin_email_list == ["root@example.com", "ops@example.com"]
    assert settings.cors_origin_list == ["http://a", "http://b"]


def test_only_credentials_are_taken_from_secrets():
    settings = Settings(jwt_secret_key="from-env", rate_limit_enabled=False)

    merged = apply_secrets(
        settings,
        {"JWT_SECRET_KEY": "from-aws", "RATE_LIMIT_ENABLED": True, "DATABASE_URL": "sqlite+aiosqlite:///x.db"},
    )

    assert merged.jwt_secret_key == "from-aws"
    assert merged.database_dsn == "sqlite+aiosqlite:///x.db"
    assert merged.rate_limit_enabled is False
    assert settings.jwt_secret_key == "from-env"


@pytest.fixture
def fresh_settings(monkeypatch):
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


def test_overlay_applied_when_secret_configured(monkeypatch, fresh_settings):
    monkeypatch.setenv("AWS_SECRETS_NAME", "bookstore/production")
    calls = []

    def fake_fetch(name, region, endpoint_url=None):
        calls.append(name)
        return {"jwt_secret_key": "rotated"}

    monkeypatch.setattr(config, "_fetch_aws_secrets", fake_fetch)

    assert config.get_settings().jwt_secret_key == "rotated"
    assert calls == ["bookstore/production"]


def test_failed_fetch_keeps_environment(monkeypatch, fresh_settings):
    monkeypatch.setenv("AWS_SECRETS_NAME", "bookstore/production")
    monkeypatch.setenv("JWT_SECRET_KEY", "env-key")

    def broken_fetch(name, region, endpoint_url=None):
        raise RuntimeError("no credentials")

    monkeypatch.setattr(config, "_fetch_aws_secrets", broken_fetch)

    assert config.get_settings().jwt_secret_key == "env-key"


def test_no_secret_name_means_no_fetch(monkeypatch, fresh_settings):
    monkeypatch.delenv("AWS_SECRETS_NAME", raising=False)

    def unexpected_fetch(*args, **kwargs):
        raise AssertionError("Secrets Manager must not be called")

    monkeypatch.setattr(config, "_fetch_aws_secrets", unexpected_fetch)
    config.get_settings()
