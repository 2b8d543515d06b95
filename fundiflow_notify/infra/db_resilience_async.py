# fundiflow_notify/infra/db_resilience_async.py
"""
``safe_db_conn``: ``db_conn`` with retries while *acquiring* a connection.

The Postgres repositories all go through it.  Only the acquire step is
retried; once the caller's block has started, errors propagate unchanged
(the block may already have written rows).
"""
from __future__ import annotations
import asyncio
from contextlib import asynccontextmanager

import asyncpg
from fundiflow_notify.infra.db_async import db_conn
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import inc_counter

logger = get_logger(__name__)

INITIAL_BACKOFF_SECONDS = 0.1
MAX_BACKOFF_SECONDS = 5.0

_TRANSIENT_TYPES = (
    asyncpg.PostgresConnectionError,
    asyncpg.TooManyConnectionsError,
    asyncpg.DeadlockDetectedError,
    asyncpg.InterfaceError,
    ConnectionError,
    asyncio.TimeoutError,
)
_TRANSIENT_MESSAGES = ("connection", "timeout", "closed", "too many connections", "reset by peer")


def is_transient_error(exc: Exception) -> bool:
    """Lost connection, pool exhaustion, deadlock, timeout"""
    if isinstance(exc, _TRANSIENT_TYPES):
        return True
    message = str(exc).lower()
    return any(fragment in message for fragment in _TRANSIENT_MESSAGES)


@asynccontextmanager
async def safe_db_conn(autocommit: bool = True, max_retries: int = 3):
    """
        async with safe_db_conn() as conn:
            await conn.fetch(...)
    """
    attempt = 0
    while True:
        entered = False
        try:
            async with db_conn(autocommit=autocommit) as conn:
                entered = True
                yield conn
            return
        except Exception as exc:
            if entered or not is_transient_error(exc) or attempt >= max_retries:
                raise

            delay = min(INITIAL_BACKOFF_SECONDS * 2 ** attempt, MAX_BACKOFF_SECONDS)
            attempt += 1
            inc_counter("database_connect_retries_total")
            logger.warning(
                f"Transient error acquiring connection ({exc.__class__.__name__}), "
                f"retry {attempt}/{max_retries} in {delay:.2f}s"
            )
            await asyncio.sleep(delay)
