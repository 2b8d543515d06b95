# tests/test_config.py
"""Tests for Settings validation and risky-config warnings."""
from __future__ import annotations

import pytest

from fundiflow_notify.config import Settings, validate_or_warn, warn_on_risky_config


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestDatabaseDsn:
    def test_database_url_wins(self):
        assert _settings(database_url="postgresql://x/y").database_dsn == "postgresql://x/y"

    def test_built_from_parts(self):
        s = _settings(pguser="u", pgpassword="p", pghost="db", pgport=6543, pgdatabase="ff")
        assert s.database_dsn == "postgresql://u:p@db:6543/ff"


class TestEmailConfig:
    def test_console_needs_nothing(self):
        assert _settings().validate_email_config() == []

    def test_smtp_lists_missing(self):
        missing = _settings(email_provider="smtp", smtp_host="smtp.example.com").validate_email_config()
        assert missing == ["smtp_user", "smtp_pass"]

    def test_relay_needs_endpoint(self):
        assert _settings(email_provider="api-relay").validate_email_config() == ["email_relay_endpoint"]

    def test_bad_from_address(self):
        assert "from_email" in _settings(from_email="nobody").validate_email_config()

    def test_smtp_configured(self):
        assert not _settings(smtp_host="h").smtp_configured
        assert _settings(smtp_host="h", smtp_user="u", smtp_pass="p").smtp_configured


class TestProductionValidation:
    def test_non_prod_never_fails(self):
        assert _settings(app_env="dev").validate_required_for_production() == []

    def test_prod_requires_token_and_real_transport(self):
        missing = _settings(app_env="prod").validate_required_for_production()
        assert "admin_token" in missing
        assert any(m.startswith("email_provider") for m in missing)

    def test_prod_ok(self):
        s = _settings(
            app_env="prod",
            admin_token="t" * 40,
            email_provider="api-relay",
            email_relay_endpoint="https://dash.example.com/api/send-email",
        )
        assert s.validate_required_for_production() == []
        validate_or_warn(s)

    def test_validate_or_warn_raises_in_prod(self):
        with pytest.raises(RuntimeError):
            validate_or_warn(_settings(app_env="prod"))


class TestWarnings:
    def test_open_cors_in_prod(self):
        s = _settings(app_env="prod", allowed_origins=["*"])
        assert any("CORS" in w for w in warn_on_risky_config(s))

    def test_unauthenticated_metrics(self):
        assert any("metrics_token" in w for w in warn_on_risky_config(_settings()))

    def test_high_concurrency(self):
        warnings = warn_on_risky_config(_settings(dispatch_max_concurrency=500, metrics_token="m"))
        assert any("dispatch_max_concurrency" in w for w in warnings)

    def test_email_timeout_not_below_channel_timeout(self):
        s = _settings(email_timeout_seconds=20, dispatch_channel_timeout_seconds=15, metrics_token="m")
        assert any("email_timeout_seconds" in w for w in warn_on_risky_config(s))

    def test_defaults_keep_email_timeout_inside_channel_timeout(self):
        s = _settings(metrics_token="m")
        assert s.email_timeout_seconds < s.dispatch_channel_timeout_seconds
        assert not any("email_timeout_seconds" in w for w in warn_on_risky_config(s))

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_CHANNEL_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("EMAIL_PROVIDER", "smtp")
        s = _settings()
        assert s.dispatch_channel_timeout_seconds == 2.5
        assert s.email_provider == "smtp"
