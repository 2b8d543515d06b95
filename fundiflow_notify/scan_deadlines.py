#!/usr/bin/env python3
# fundiflow_notify/scan_deadlines.py
"""
One deadline scan, for cron or a scheduled job.

    python -m fundiflow_notify.scan_deadlines
    python -m fundiflow_notify.scan_deadlines --horizon 5
    python -m fundiflow_notify.scan_deadlines --dry-run     # list, do not notify
"""
import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone

from fundiflow_notify.config import settings
from fundiflow_notify.core.notifications.deadline_scanner import DeadlineScanner
from fundiflow_notify.infra.db_async import close_pool, init_pool
from fundiflow_notify.infra.http_client import close_relay_session
from fundiflow_notify.infra.logging_config import get_logger, setup_logging
from fundiflow_notify.infra.notification_service import build_runtime
from fundiflow_notify.infra.pg_notification_store_async import AsyncPostgresNotificationStore
from fundiflow_notify.infra.pg_preference_store_async import AsyncPostgresPreferenceStore
from fundiflow_notify.infra.pg_project_directory_async import AsyncPostgresProjectDirectory
from fundiflow_notify.infra.pg_user_directory_async import AsyncPostgresUserDirectory

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send deadline reminders for projects due soon.")
    parser.add_argument(
        "--horizon",
        type=int,
        default=settings.deadline_horizon_days,
        help=f"days ahead to look (default: {settings.deadline_horizon_days})",
    )
    parser.add_argument("--dry-run", action="store_true", help="list matching projects without notifying")
    args = parser.parse_args(argv)
    if args.horizon < 0:
        parser.error("--horizon must be >= 0")
    return args


async def run(args: argparse.Namespace) -> dict:
    projects = AsyncPostgresProjectDirectory()
    runtime = build_runtime(
        settings,
        users=AsyncPostgresUserDirectory(),
        preferences=AsyncPostgresPreferenceStore(),
        notifications=AsyncPostgresNotificationStore(),
        projects=projects,
    )
    scanner = DeadlineScanner(projects, runtime.dispatcher, horizon_days=args.horizon)

    if not args.dry_run:
        report = await scanner.scan()
        return report.to_dict()

    now = datetime.now(timezone.utc)
    found = await projects.find_approaching_deadlines(args.horizon, now)
    events = [e for e in (scanner.event_for(p, now) for p in found) if e is not None]
    return {
        "projects_found": len(found),
        "would_notify": [
            {"project_id": e.project_id, "project_name": e.project_name, "days_remaining": e.days_remaining}
            for e in events
        ],
    }


async def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        await init_pool()
        summary = await run(args)
    except Exception as exc:
        logger.critical(f"Deadline scan failed: {exc}", exc_info=True)
        return 1
    finally:
        await close_relay_session()
        await close_pool()

    print(json.dumps(summary, indent=2))
    return 0


def cli() -> None:
    setup_logging(level=settings.log_level, use_json=settings.is_production)
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
