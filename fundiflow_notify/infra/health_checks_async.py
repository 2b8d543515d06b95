# fundiflow_notify/infra/health_checks_async.py
from __future__ import annotations
import time
from typing import Dict, Any
from enum import Enum

from fundiflow_notify.infra.db_async import get_pool
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.schema_validator import get_schema_info

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class AsyncHealthCheck:
    """Base class for async health checks"""

    def __init__(self, name: str, critical: bool = True):
        self.name = name
        self.critical = critical

    async def check(self) -> Dict[str, Any]:
        """Return a dict with 'status', 'details' and optionally 'error'"""
        raise NotImplementedError


class AsyncDatabaseHealthCheck(AsyncHealthCheck):
    """Database reachable and notification tables present"""

    REQUIRED_TABLES = ("users", "projects", "notifications", "notification_preferences")

    def __init__(self):
        super().__init__("database", critical=True)

    async def check(self) -> Dict[str, Any]:
        start = time.time()

        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")

                missing_tables = []
                for table in self.REQUIRED_TABLES:
                    if await conn.fetchval("SELECT to_regclass($1)", table) is None:
                        missing_tables.append(table)

            if missing_tables:
                return {
                    "status": HealthStatus.UNHEALTHY,
                    "details": "Missing required tables",
                    "error": f"Missing: {', '.join(missing_tables)}",
                }

            duration = time.time() - start
            if duration > 1.0:
                return {
                    "status": HealthStatus.DEGRADED,
                    "details": f"Slow database response: {duration:.3f}s",
                    "response_time": duration,
                }

            return {
                "status": HealthStatus.HEALTHY,
                "details": "Database operational",
                "response_time": duration,
            }

        except Exception as exc:
            logger.error("Database health check failed", exc_info=True)
            return {
                "status": HealthStatus.UNHEALTHY,
                "details": "Database connection failed",
                "error": str(exc)[:200],
            }


class EmailTransportHealthCheck(AsyncHealthCheck):
    """Reports whether the configured email transport has what it needs"""

    def __init__(self, transport):
        super().__init__("email_transport", critical=False)
        self._transport = transport

    async def check(self) -> Dict[str, Any]:
        if self._transport.is_configured():
            return {"status": HealthStatus.HEALTHY, "details": f"provider={self._transport.name}"}
        return {
            "status": HealthStatus.DEGRADED,
            "details": f"provider={self._transport.name} is not configured",
        }


class AsyncHealthChecker:
    """Aggregate async health checks"""

    def __init__(self, checks: list[AsyncHealthCheck] | None = None, include_schema: bool = True):
        self.checks: list[AsyncHealthCheck] = checks if checks is not None else [AsyncDatabaseHealthCheck()]
        self.include_schema = include_schema

    async def run_checks(self, include_non_critical: bool = True) -> Dict[str, Any]:
        results = {}
        overall_status = HealthStatus.HEALTHY

        for check in self.checks:
            if not include_non_critical and not check.critical:
                continue

            result = await check.check()
            results[check.name] = result

            if result["status"] == HealthStatus.UNHEALTHY and check.critical:
                overall_status = HealthStatus.UNHEALTHY
            elif result["status"] != HealthStatus.HEALTHY and overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        report: Dict[str, Any] = {
            "status": overall_status.value,
            "checks": results,
            "timestamp": time.time(),
        }
        if self.include_schema:
            try:
                report["schema"] = await get_schema_info()
            except Exception as exc:
                report["schema"] = {"error": str(exc)[:200]}
        return report
