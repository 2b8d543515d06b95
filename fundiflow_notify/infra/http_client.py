# fundiflow_notify/infra/http_client.py
"""
Shared aiohttp session for the api-relay email transport.

One lazily created session per process keeps relay connections alive
between sends.  ``close_relay_session()`` runs once at shutdown (HTTP app
lifespan, CLI ``finally`` blocks).
"""
from __future__ import annotations

import aiohttp

from fundiflow_notify.infra.logging_config import get_logger

logger = get_logger(__name__)

RELAY_CONNECT_TIMEOUT = 5
RELAY_POOL_LIMIT = 20
USER_AGENT = "fundiflow-notify/1.0"

_relay_session: aiohttp.ClientSession | None = None


def get_relay_session(total_timeout: float = 10.0) -> aiohttp.ClientSession:
    """Session used by ``ApiRelayEmailTransport``; recreated if it was closed."""
    global _relay_session

    if _relay_session is None or _relay_session.closed:
        _relay_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=total_timeout, connect=RELAY_CONNECT_TIMEOUT),
            connector=aiohttp.TCPConnector(limit=RELAY_POOL_LIMIT, keepalive_timeout=30),
            headers={"User-Agent": USER_AGENT},
        )
        logger.debug(f"Relay HTTP session opened (timeout={total_timeout}s, limit={RELAY_POOL_LIMIT})")
    return _relay_session


async def close_relay_session() -> None:
    global _relay_session

    session, _relay_session = _relay_session, None
    if session is not None and not session.closed:
        await session.close()
        logger.debug("Relay HTTP session closed")
