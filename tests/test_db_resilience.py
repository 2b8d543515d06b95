# tests/test_db_resilience.py
"""Tests for safe_db_conn retry behaviour (db_conn patched, no database)."""
from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from fundiflow_notify.infra.db_resilience_async import is_transient_error, safe_db_conn
from fundiflow_notify.infra.metrics import get_metrics_collector


def _flaky_db_conn(failures: int):
    state = {"calls": 0}

    @asynccontextmanager
    async def fake_db_conn(autocommit=True):
        state["calls"] += 1
        if state["calls"] <= failures:
            raise ConnectionError("pool exhausted")
        yield "conn"

    return fake_db_conn, state


class TestTransientErrors:
    def test_connection_errors(self):
        assert is_transient_error(ConnectionError("x"))
        assert is_transient_error(asyncpg.TooManyConnectionsError())

    def test_message_match(self):
        assert is_transient_error(RuntimeError("server closed the connection unexpectedly"))

    def test_programming_error_not_transient(self):
        assert not is_transient_error(ValueError("bad input"))


class TestSafeDbConn:
    @pytest.mark.asyncio
    async def test_retries_acquire(self):
        fake, state = _flaky_db_conn(failures=2)
        with patch("fundiflow_notify.infra.db_resilience_async.db_conn", fake), \
                patch("fundiflow_notify.infra.db_resilience_async.asyncio.sleep", new=AsyncMock()) as sleep:
            async with safe_db_conn() as conn:
                assert conn == "conn"

        assert state["calls"] == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.2]
        assert get_metrics_collector().get_counter("database_connect_retries_total") == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        fake, state = _flaky_db_conn(failures=10)
        with patch("fundiflow_notify.infra.db_resilience_async.db_conn", fake), \
                patch("fundiflow_notify.infra.db_resilience_async.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ConnectionError):
                async with safe_db_conn(max_retries=2):
                    pass
        assert state["calls"] == 3

    @pytest.mark.asyncio
    async def test_body_errors_not_retried(self):
        fake, state = _flaky_db_conn(failures=0)
        with patch("fundiflow_notify.infra.db_resilience_async.db_conn", fake):
            with pytest.raises(ConnectionError):
                async with safe_db_conn():
                    raise ConnectionError("lost mid-query")
        assert state["calls"] == 1
