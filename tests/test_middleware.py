# tests/test_middleware.py
"""Tests for fundiflow_notify/transport/middleware.py: request ID, error handling."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from fundiflow_notify.infra.metrics import get_metrics_collector
from fundiflow_notify.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)


def _build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware, enabled=True)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/ok")
    def ok():
        return {"ok": True}

    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    return app


class TestRequestID:
    def test_generated_when_missing(self):
        response = TestClient(_build_app()).get("/ok")
        assert len(response.headers["X-Request-ID"]) == 36

    def test_propagated_when_given(self):
        response = TestClient(_build_app()).get("/ok", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestErrorHandling:
    def test_unhandled_exception_becomes_500_json(self):
        client = TestClient(_build_app(), raise_server_exceptions=False)
        response = client.get("/boom", headers={"X-Request-ID": "req-9"})
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "request_id": "req-9"}


class TestRequestIDValidation:
    def test_unsafe_id_replaced(self):
        response = TestClient(_build_app()).get("/ok", headers={"X-Request-ID": "bad id with spaces"})
        assert response.headers["X-Request-ID"] != "bad id with spaces"
        assert len(response.headers["X-Request-ID"]) == 36


class TestRequestMetrics:
    def test_counts_by_status_class(self):
        client = TestClient(_build_app(), raise_server_exceptions=False)
        client.get("/ok")
        client.get("/missing")
        collector = get_metrics_collector()
        assert collector.get_counter("http_requests_total", method="GET", status="2xx") == 1
        assert collector.get_counter("http_requests_total", method="GET", status="4xx") == 1
