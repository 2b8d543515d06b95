#!/usr/bin/env python3
# fundiflow_notify/infra/migrate.py
"""
Standalone migration runner.

    python -m fundiflow_notify.infra.migrate            # apply pending
    python -m fundiflow_notify.infra.migrate --dry-run  # list pending only

Run before starting the service (CI/CD step, init container, or by hand).
The service validates the schema version at startup but never migrates.
"""
import argparse
import asyncio
import sys

from fundiflow_notify.config import settings
from fundiflow_notify.infra.db_async import close_pool, init_pool
from fundiflow_notify.infra.logging_config import get_logger, setup_logging
from fundiflow_notify.infra.migrations_async import apply_migrations

logger = get_logger(__name__)


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Apply FundiFlow notification migrations.")
    parser.add_argument("--dry-run", action="store_true", help="list pending migrations without applying")
    args = parser.parse_args(argv)

    logger.info(f"Migrating {settings.pghost}:{settings.pgport}/{settings.pgdatabase} (env={settings.app_env})")

    try:
        await init_pool()
        result = await apply_migrations(dry_run=args.dry_run)
    except Exception as exc:
        logger.critical(f"MIGRATION FAILED: {exc}", exc_info=True)
        return 1
    finally:
        await close_pool()

    if args.dry_run:
        for name in result["pending"] or ["(none)"]:
            logger.info(f"  pending: {name}")
    else:
        for name in result["applied"] or ["(nothing to apply)"]:
            logger.info(f"  applied: {name}")

    return 0 if result["ok"] else 1


if __name__ == "__main__":
    setup_logging(level=settings.log_level, use_json=settings.is_production)
    sys.exit(asyncio.run(main()))
