# fundiflow_notify/infra/migrations_async.py
"""
Forward-only SQL migrations for the notification tables.

Files in ``fundiflow_notify/infra/sql`` are applied in filename order
inside a single transaction; applied filenames are recorded in
``schema_migrations``.  The newest filename must match
``settings.expected_schema_version`` (see ``schema_validator``).
"""
from __future__ import annotations
from pathlib import Path

import asyncpg

from fundiflow_notify.infra.db_async import db_conn
from fundiflow_notify.infra.logging_config import get_logger

logger = get_logger(__name__)

SQL_DIR = Path(__file__).resolve().parent / "sql"

_CREATE_TRACKING_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_migrations(
      version text PRIMARY KEY,
      applied_at timestamptz NOT NULL DEFAULT now()
    )
"""


def migration_files() -> list[Path]:
    """``001_init.sql``, ``002_...`` in apply order"""
    return sorted(p for p in SQL_DIR.glob("*.sql") if p.is_file())


async def _applied_versions(conn: asyncpg.Connection) -> set[str]:
    await conn.execute(_CREATE_TRACKING_TABLE)
    return {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}


async def apply_migrations(dry_run: bool = False) -> dict:
    """
    Apply pending migrations.

    With ``dry_run`` nothing is executed; ``pending`` lists what would run.

    Returns:
        dict with keys ok, applied, pending, count
    """
    async with db_conn(autocommit=False) as conn:
        done = await _applied_versions(conn)
        pending = [p for p in migration_files() if p.name not in done]

        if dry_run:
            return {"ok": True, "applied": [], "pending": [p.name for p in pending], "count": 0}

        applied = []
        for path in pending:
            logger.info(f"Applying migration {path.name}")
            await conn.execute(path.read_text(encoding="utf-8"))
            await conn.execute("INSERT INTO schema_migrations(version) VALUES ($1)", path.name)
            applied.append(path.name)

    logger.info(f"Migrations complete: {len(applied)} applied, {len(done)} already present")
    return {"ok": True, "applied": applied, "pending": [], "count": len(applied)}
