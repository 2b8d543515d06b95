# tests/test_security.py
"""Tests for fundiflow_notify/transport/security.py"""
from __future__ import annotations

import re
from unittest.mock import MagicMock, patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from fundiflow_notify.transport.security import (
    generate_secure_token,
    require_admin_auth,
    require_metrics_auth,
    sanitize_error_message,
    validate_token_strength,
)


def _make_mock_settings(**overrides):
    """Return a MagicMock that behaves like fundiflow_notify.config.settings."""
    defaults = {
        "admin_token": "aA1" * 11,
        "metrics_token": None,
        "email_relay_token": None,
        "app_env": "dev",
    }
    defaults.update(overrides)
    mock = MagicMock()
    for k, v in defaults.items():
        setattr(mock, k, v)
    return mock


def _build_app() -> FastAPI:
    app = FastAPI()

    @app.get("/admin", dependencies=[Depends(require_admin_auth)])
    def admin():
        return {"ok": True}

    @app.get("/metrics", dependencies=[Depends(require_metrics_auth)])
    def metrics():
        return {"ok": True}

    return app


class TestTokenValidation:
    def test_short_token(self):
        warnings = validate_token_strength("abc", "ADMIN_TOKEN")
        assert any("too short" in w for w in warnings)

    def test_weak_pattern(self):
        warnings = validate_token_strength("password" + "x" * 40, "ADMIN_TOKEN")
        assert any("weak pattern" in w for w in warnings)

    def test_strong_token(self):
        assert validate_token_strength("Zk3" * 15, "ADMIN_TOKEN") == []


class TestSecureTokenGeneration:
    def test_correct_length(self):
        assert len(generate_secure_token(32)) >= 32

    def test_url_safe_chars(self):
        assert re.match(r"^[A-Za-z0-9_-]+$", generate_secure_token(32))


class TestAdminAuth:
    def test_valid_token(self):
        with patch("fundiflow_notify.transport.security.settings", _make_mock_settings()):
            response = TestClient(_build_app()).get("/admin", headers={"Authorization": f"Bearer {'aA1' * 11}"})
        assert response.status_code == 200

    def test_missing_token(self):
        with patch("fundiflow_notify.transport.security.settings", _make_mock_settings()):
            response = TestClient(_build_app()).get("/admin")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_dev_without_token_is_open(self):
        with patch("fundiflow_notify.transport.security.settings", _make_mock_settings(admin_token=None)):
            response = TestClient(_build_app()).get("/admin")
        assert response.status_code == 200

    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_unconfigured_outside_dev(self, env):
        settings = _make_mock_settings(admin_token=None, app_env=env)
        with patch("fundiflow_notify.transport.security.settings", settings):
            response = TestClient(_build_app()).get("/admin")
        assert response.status_code == 503


class TestMetricsAuth:
    def test_open_without_token(self):
        with patch("fundiflow_notify.transport.security.settings", _make_mock_settings()):
            assert TestClient(_build_app()).get("/metrics").status_code == 200

    def test_token_required_when_set(self):
        settings = _make_mock_settings(metrics_token="m" * 40)
        with patch("fundiflow_notify.transport.security.settings", settings):
            client = TestClient(_build_app())
            assert client.get("/metrics").status_code == 401
            assert client.get("/metrics", headers={"Authorization": f"Bearer {'m' * 40}"}).status_code == 200


class TestSanitizeErrorMessage:
    def test_production_hides_details(self):
        assert sanitize_error_message(ValueError("db password=xyz"), is_production=True) == "Internal server error"

    def test_dev_shows_type(self):
        assert sanitize_error_message(ValueError("bad"), is_production=False) == "ValueError: bad"
