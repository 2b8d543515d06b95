# fundiflow_notify/transport/http_app.py
"""
HTTP surface of the notification service.

Security layers:
1. Public: /health only
2. Metrics token: /metrics, /health/detailed
3. Admin token: trigger events, jobs, inbox and preference endpoints
4. Relay token: /api/send-email (the receiving end of the api-relay transport)

Collaborators live on ``app.state`` (``runtime``, ``health_checker``,
``relay_transport``) so tests can build the app and swap in fakes.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from fundiflow_notify.config import settings
from fundiflow_notify.core.notifications.domain import EmailRecipient, utcnow
from fundiflow_notify.core.notifications.errors import NotFoundError, NotificationError
from fundiflow_notify.infra.db_async import close_pool, init_pool
from fundiflow_notify.infra.email_transports import build_relay_receiver_transport
from fundiflow_notify.infra.health_checks_async import (
    AsyncDatabaseHealthCheck,
    AsyncHealthChecker,
    EmailTransportHealthCheck,
)
from fundiflow_notify.infra.http_client import close_relay_session
from fundiflow_notify.infra.logging_config import get_logger, mask_email, setup_logging
from fundiflow_notify.infra.metrics import get_metrics_collector, inc_counter
from fundiflow_notify.infra.notification_service import NotificationRuntime, build_runtime
from fundiflow_notify.infra.pg_notification_store_async import AsyncPostgresNotificationStore
from fundiflow_notify.infra.pg_preference_store_async import AsyncPostgresPreferenceStore
from fundiflow_notify.infra.pg_project_directory_async import AsyncPostgresProjectDirectory
from fundiflow_notify.infra.pg_user_directory_async import AsyncPostgresUserDirectory
from fundiflow_notify.infra.schema_validator import validate_schema_version
from fundiflow_notify.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)
from fundiflow_notify.transport.schemas import (
    AnnouncementCreatedIn,
    DeadlineApproachingIn,
    PreferenceUpdateIn,
    ProjectAssignedIn,
    ProjectCreatedIn,
    SendEmailIn,
    WorkSessionCompletedIn,
)
from fundiflow_notify.transport.security import (
    check_configured_tokens,
    require_admin_auth,
    require_metrics_auth,
    require_relay_auth,
    sanitize_error_message,
)

setup_logging(level=settings.log_level, use_json=settings.is_production)

logger = get_logger(__name__)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_runtime(request: Request) -> NotificationRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return runtime


# ============================================================================
# LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""
    logger.info(f"Starting notification service: env={settings.app_env}")

    await init_pool()
    logger.info("Database pool initialized")

    check_configured_tokens()

    # Migrations are run separately: python -m fundiflow_notify.infra.migrate
    try:
        schema_result = await validate_schema_version()
        logger.info(f"Schema validated: {schema_result['current_version']}", extra=schema_result)
    except Exception:
        logger.critical(
            "Schema validation failed. Run migrations first: python -m fundiflow_notify.infra.migrate",
            exc_info=True,
        )
        await close_pool()
        raise

    runtime = build_runtime(
        settings,
        users=AsyncPostgresUserDirectory(),
        preferences=AsyncPostgresPreferenceStore(),
        notifications=AsyncPostgresNotificationStore(),
        projects=AsyncPostgresProjectDirectory(),
    )
    fastapi_app.state.runtime = runtime
    fastapi_app.state.health_checker = AsyncHealthChecker(
        checks=[AsyncDatabaseHealthCheck(), EmailTransportHealthCheck(runtime.transport)]
    )

    scanner_worker = None
    if settings.deadline_scan_enabled:
        from fundiflow_notify.core.notifications.deadline_scanner import DeadlineScannerWorker

        scanner_worker = DeadlineScannerWorker(
            runtime.scanner, interval=settings.deadline_scan_interval_seconds
        )
        await scanner_worker.start()

    logger.info("Application startup complete")

    yield

    # SHUTDOWN
    logger.info("Shutting down application")

    if scanner_worker is not None:
        await scanner_worker.stop()

    await runtime.pool.shutdown(timeout=10.0)
    await close_relay_session()
    await close_pool()
    logger.info("Application shutdown complete")


# ============================================================================
# ROUTES
# ============================================================================

router = APIRouter()


@router.get("/health")
async def health():
    """Public liveness probe, no internals."""
    return {"status": "ok"}


@router.get("/health/detailed", dependencies=[Depends(require_metrics_auth)])
async def detailed_health(request: Request):
    checker = getattr(request.app.state, "health_checker", None) or AsyncHealthChecker()
    return await checker.run_checks(include_non_critical=True)


@router.get("/metrics", dependencies=[Depends(require_metrics_auth)])
def metrics():
    return get_metrics_collector().get_metrics()


# ---------------------------------------------------------------------------
# Trigger events
# ---------------------------------------------------------------------------

async def _schedule(runtime: NotificationRuntime, body: BaseModel, wait: bool):
    event = body.to_event()
    if wait:
        result = await runtime.dispatcher.dispatch(event)
        return result.to_dict()

    task = runtime.pool.submit(event)
    if task is None:
        return JSONResponse(status_code=503, content={"status": "rejected"})
    return JSONResponse(status_code=202, content={"status": "scheduled"})


@router.post("/events/project-created", dependencies=[Depends(require_admin_auth)])
async def project_created(
    body: ProjectCreatedIn,
    wait: bool = False,
    runtime: NotificationRuntime = Depends(get_runtime),
):
    return await _schedule(runtime, body, wait)


@router.post("/events/project-assigned", dependencies=[Depends(require_admin_auth)])
async def project_assigned(
    body: ProjectAssignedIn,
    wait: bool = False,
    runtime: NotificationRuntime = Depends(get_runtime),
):
    return await _schedule(runtime, body, wait)


@router.post("/events/work-session-completed", dependencies=[Depends(require_admin_auth)])
async def work_session_completed(
    body: WorkSessionCompletedIn,
    wait: bool = False,
    runtime: NotificationRuntime = Depends(get_runtime),
):
    return await _schedule(runtime, body, wait)


@router.post("/events/deadline-approaching", dependencies=[Depends(require_admin_auth)])
async def deadline_approaching(
    body: DeadlineApproachingIn,
    wait: bool = False,
    runtime: NotificationRuntime = Depends(get_runtime),
):
    return await _schedule(runtime, body, wait)


@router.post("/events/announcement-created", dependencies=[Depends(require_admin_auth)])
async def announcement_created(
    body: AnnouncementCreatedIn,
    wait: bool = False,
    runtime: NotificationRuntime = Depends(get_runtime),
):
    return await _schedule(runtime, body, wait)


@router.post("/jobs/deadline-scan", dependencies=[Depends(require_admin_auth)])
async def deadline_scan(runtime: NotificationRuntime = Depends(get_runtime)):
    report = await runtime.scanner.scan()
    return report.to_dict()


# ---------------------------------------------------------------------------
# Email relay receiver
# ---------------------------------------------------------------------------

@router.post("/api/send-email", dependencies=[Depends(require_relay_auth)])
async def send_email(body: SendEmailIn, request: Request):
    if not body.to or not body.subject or not (body.html or body.text):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Missing required fields"},
        )

    transport = request.app.state.relay_transport
    recipient = EmailRecipient(user_id="", email=body.to, name=body.to.partition("@")[0])
    sent = await transport.send(recipient, body.subject, body.html or "", body.text or "")
    inc_counter("email_relay_requests_total", status="sent" if sent else "failed")

    if not sent:
        logger.warning(f"Relay send failed: to={mask_email(body.to)} provider={transport.name}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to send email"},
        )

    return {
        "success": True,
        "messageId": f"{transport.name}-{int(utcnow().timestamp() * 1000)}",
        "message": "Email sent successfully",
    }


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------

@router.get("/users/{user_id}/notifications", dependencies=[Depends(require_admin_auth)])
async def list_notifications(
    user_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    unread_only: bool = False,
    runtime: NotificationRuntime = Depends(get_runtime),
):
    items = await runtime.notifications.list_for_user(user_id, limit=limit, unread_only=unread_only)
    return {"notifications": [n.to_dict() for n in items]}


@router.get("/users/{user_id}/notifications/unread-count", dependencies=[Depends(require_admin_auth)])
async def unread_count(user_id: str, runtime: NotificationRuntime = Depends(get_runtime)):
    return {"count": await runtime.notifications.unread_count(user_id)}


@router.post("/notifications/{notification_id}/read", dependencies=[Depends(require_admin_auth)])
async def mark_read(notification_id: str, runtime: NotificationRuntime = Depends(get_runtime)):
    if not await runtime.notifications.mark_read(notification_id):
        raise NotFoundError("Notification not found")
    return {"success": True}


@router.post("/users/{user_id}/notifications/read-all", dependencies=[Depends(require_admin_auth)])
async def mark_all_read(user_id: str, runtime: NotificationRuntime = Depends(get_runtime)):
    return {"updated": await runtime.notifications.mark_all_read(user_id)}


@router.delete("/notifications/{notification_id}", dependencies=[Depends(require_admin_auth)])
async def delete_notification(notification_id: str, runtime: NotificationRuntime = Depends(get_runtime)):
    if not await runtime.notifications.delete(notification_id):
        raise NotFoundError("Notification not found")
    return {"success": True}


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------

@router.get("/users/{user_id}/notification-preferences", dependencies=[Depends(require_admin_auth)])
async def get_preferences(user_id: str, runtime: NotificationRuntime = Depends(get_runtime)):
    pref = await runtime.preferences.get_or_create(user_id)
    return pref.to_dict()


@router.put("/users/{user_id}/notification-preferences", dependencies=[Depends(require_admin_auth)])
async def update_preferences(
    user_id: str,
    body: PreferenceUpdateIn,
    runtime: NotificationRuntime = Depends(get_runtime),
):
    pref = await runtime.preferences.update(user_id, body.to_changes())
    return pref.to_dict()


# ============================================================================
# APP FACTORY
# ============================================================================

async def notification_error_handler(request: Request, exc: NotificationError):
    if exc.status_code >= 500:
        logger.error(f"Notification error: {exc.detail}", extra={"status_code": exc.status_code})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "request_id": getattr(request.state, "request_id", None)},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "request_id": getattr(request.state, "request_id", None)},
        headers=exc.headers,
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": sanitize_error_message(exc, settings.is_production),
            "request_id": getattr(request.state, "request_id", None),
        },
    )


def create_app(*, with_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI app.

    ``with_lifespan=False`` skips database startup; the caller sets
    ``app.state.runtime`` itself (tests do this with in-memory fakes).
    """
    fastapi_app = FastAPI(
        title="FundiFlow Notifications",
        description="Notification dispatch for the FundiFlow dashboard",
        version="1.0.0",
        lifespan=lifespan if with_lifespan else None,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )

    fastapi_app.state.relay_transport = build_relay_receiver_transport(settings)

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    fastapi_app.add_middleware(ErrorHandlingMiddleware)
    fastapi_app.add_middleware(
        RequestLoggingMiddleware,
        enabled=settings.enable_request_logging,
        record_metrics=settings.enable_metrics,
    )
    fastapi_app.add_middleware(RequestIDMiddleware)

    fastapi_app.add_exception_handler(NotificationError, notification_error_handler)
    fastapi_app.add_exception_handler(HTTPException, http_exception_handler)
    fastapi_app.add_exception_handler(Exception, general_exception_handler)

    fastapi_app.include_router(router)
    return fastapi_app


app = create_app()
