# fundiflow_notify/infra/db_async.py
"""
asyncpg pool shared by the Postgres repositories (users, projects,
notifications, preferences) and the migration runner.

Sessions run in UTC so deadline arithmetic in SQL matches the
scanner's ``datetime.now(timezone.utc)``.
"""
from __future__ import annotations
from typing import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
from fundiflow_notify.config import settings
from fundiflow_notify.infra.logging_config import get_logger

logger = get_logger(__name__)

APPLICATION_NAME = "fundiflow_notify"
COMMAND_TIMEOUT_SECONDS = 60

_pool: asyncpg.Pool | None = None


def _server_settings() -> dict[str, str]:
    return {
        "application_name": APPLICATION_NAME,
        "timezone": "UTC",
        "statement_timeout": str(settings.pg_statement_timeout_ms),
        "idle_in_transaction_session_timeout": str(settings.pg_idle_in_tx_timeout_ms),
    }


async def init_pool() -> None:
    """Create the pool once; later calls are no-ops."""
    global _pool

    if _pool is not None:
        return

    _pool = await asyncpg.create_pool(
        dsn=settings.database_dsn,
        min_size=settings.pg_pool_min,
        max_size=settings.pg_pool_max,
        timeout=settings.pg_connect_timeout,
        command_timeout=COMMAND_TIMEOUT_SECONDS,
        server_settings=_server_settings(),
    )
    logger.info(
        f"Postgres pool ready: {settings.pghost}:{settings.pgport}/{settings.pgdatabase} "
        f"(min={settings.pg_pool_min}, max={settings.pg_pool_max})"
    )


async def close_pool() -> None:
    global _pool

    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()
        logger.info("Postgres pool closed")


@asynccontextmanager
async def db_conn(autocommit: bool = True) -> AsyncIterator[asyncpg.Connection]:
    """
    Borrow a pooled connection.

        async with db_conn() as conn:
            await conn.fetch("SELECT * FROM notifications WHERE user_id = $1", user_id)

    ``autocommit=False`` wraps the block in a transaction (commit on exit,
    rollback on exception).
    """
    pool = await get_pool()

    async with pool.acquire() as conn:
        if autocommit:
            yield conn
        else:
            async with conn.transaction():
                yield conn


async def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")
    return _pool
