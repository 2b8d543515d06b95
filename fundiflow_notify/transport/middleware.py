# fundiflow_notify/transport/middleware.py
import re
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from fundiflow_notify.infra.logging_config import get_logger, LogContext
from fundiflow_notify.infra.metrics import NotificationMetrics

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
# Caller-supplied ids end up in logs; anything else is replaced
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Polled by load balancers; logged at DEBUG only
_QUIET_PATHS = frozenset({"/health"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID (the dashboard backend sends one) or mint a UUID"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = incoming if _VALID_REQUEST_ID.match(incoming) else str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line and one metrics sample per request"""

    def __init__(self, app: ASGIApp, enabled: bool = True, record_metrics: bool = True):
        super().__init__(app)
        self.enabled = enabled
        self.record_metrics = record_metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled and not self.record_metrics:
            return await call_next(request)

        log = LogContext(logger, request_id=getattr(request.state, "request_id", None))
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            if self.enabled:
                log.error(
                    f"{request.method} {request.url.path} failed: {exc.__class__.__name__} "
                    f"after {(time.perf_counter() - started) * 1000:.1f}ms",
                    exc_info=True,
                )
            raise

        elapsed = time.perf_counter() - started
        if self.record_metrics:
            NotificationMetrics.http_request(request.method, response.status_code, elapsed)
        if self.enabled:
            level = "debug" if request.url.path in _QUIET_PATHS else "info"
            getattr(log, level)(
                f"{request.method} {request.url.path} status={response.status_code} "
                f"duration={elapsed * 1000:.1f}ms"
            )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last line of defence: unhandled exceptions become a JSON 500 carrying the request id"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", "unknown")
            LogContext(logger, request_id=request_id).error(
                f"Unhandled exception on {request.method} {request.url.path}: "
                f"{exc.__class__.__name__}: {exc}",
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "request_id": request_id},
            )
