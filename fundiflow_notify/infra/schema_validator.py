# fundiflow_notify/infra/schema_validator.py
"""
Schema version check run at service startup.

Migrations are applied out of band (``python -m fundiflow_notify.infra.migrate``);
the service refuses to start against a schema it was not built for.
"""
from __future__ import annotations
from fundiflow_notify.config import settings
from fundiflow_notify.infra.db_async import db_conn
from fundiflow_notify.infra.logging_config import get_logger

logger = get_logger(__name__)

_MIGRATE_HINT = "Run migrations first: python -m fundiflow_notify.infra.migrate"

_TABLE_EXISTS_SQL = """
    SELECT EXISTS (
        SELECT FROM information_schema.tables
        WHERE table_schema = 'public'
        AND table_name = 'schema_migrations'
    )
"""


async def validate_schema_version() -> dict:
    """
    Raise RuntimeError unless the latest applied migration equals
    ``settings.expected_schema_version``.
    """
    async with db_conn() as conn:
        if not await conn.fetchval(_TABLE_EXISTS_SQL):
            error = f"Schema migrations table not found. {_MIGRATE_HINT}"
            logger.critical(error)
            raise RuntimeError(error)

        latest = await conn.fetchrow(
            "SELECT version, applied_at FROM schema_migrations ORDER BY version DESC LIMIT 1"
        )

    if not latest:
        error = f"No migrations have been applied. {_MIGRATE_HINT}"
        logger.critical(error)
        raise RuntimeError(error)

    current_version = latest["version"]
    if current_version != settings.expected_schema_version:
        error = (
            f"Schema version mismatch! Expected: {settings.expected_schema_version}, "
            f"Found: {current_version}. {_MIGRATE_HINT}"
        )
        logger.critical(error)
        raise RuntimeError(error)

    logger.info(f"Schema version validated: {current_version}")
    return {
        "ok": True,
        "current_version": current_version,
        "expected_version": settings.expected_schema_version,
        "error": None,
    }


async def get_schema_info() -> dict:
    """Schema state for the health endpoint."""
    async with db_conn() as conn:
        if not await conn.fetchval(_TABLE_EXISTS_SQL):
            return {"initialized": False, "migrations_applied": 0, "latest_version": None}

        rows = await conn.fetch("SELECT version FROM schema_migrations ORDER BY version")

    versions = [row["version"] for row in rows]
    latest = versions[-1] if versions else None
    return {
        "initialized": True,
        "migrations_applied": len(versions),
        "latest_version": latest,
        "expected_version": settings.expected_schema_version,
        "is_compatible": latest == settings.expected_schema_version,
    }
