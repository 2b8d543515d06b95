# fundiflow_notify/transport/security.py
"""
Bearer-token dependencies for the HTTP surface.

- ``require_admin_auth``   event, job and inbox endpoints (called by the dashboard backend)
- ``require_metrics_auth`` /metrics and /health/detailed, open when METRICS_TOKEN is unset
- ``require_relay_auth``   /api/send-email, open when EMAIL_RELAY_TOKEN is unset

Tokens are compared in constant time.
"""
import hmac
import secrets

from fastapi import HTTPException, Request, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from fundiflow_notify.config import settings
from fundiflow_notify.infra.logging_config import get_logger

logger = get_logger(__name__)

# Minimum token length for security (32 bytes = 256 bits)
MIN_TOKEN_LENGTH = 32
WEAK_TOKEN_PATTERNS = [
    "password", "secret", "token", "admin", "test", "demo",
    "123456", "000000", "111111", "aaaaaa",
]

bearer_scheme = HTTPBearer(
    scheme_name="Admin Token",
    description="Enter your admin token (without 'Bearer ' prefix)",
    auto_error=False,
)


def validate_token_strength(token: str, token_name: str = "token") -> list[str]:
    """Warnings for a weak token (empty list when it looks fine)."""
    warnings = []

    if len(token) < MIN_TOKEN_LENGTH:
        warnings.append(
            f"{token_name} is too short ({len(token)} chars). "
            f"Minimum recommended: {MIN_TOKEN_LENGTH} chars"
        )

    token_lower = token.lower()
    for pattern in WEAK_TOKEN_PATTERNS:
        if pattern in token_lower:
            warnings.append(
                f"{token_name} contains weak pattern '{pattern}'. "
                "Use a cryptographically random token"
            )
            break

    return warnings


def generate_secure_token(length: int = 32) -> str:
    return secrets.token_urlsafe(length)


def check_configured_tokens() -> None:
    """Log warnings for weak tokens at startup."""
    for name, token in (
        ("ADMIN_TOKEN", settings.admin_token),
        ("METRICS_TOKEN", settings.metrics_token),
        ("EMAIL_RELAY_TOKEN", settings.email_relay_token),
    ):
        if token:
            for warning in validate_token_strength(token, name):
                logger.warning(f"SECURITY: {warning}")


def _token_matches(credentials: HTTPAuthorizationCredentials | None, expected: str) -> bool:
    if not credentials:
        return False
    return hmac.compare_digest(credentials.credentials.encode(), expected.encode())


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_admin_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
):
    """
    Usage:
        @router.post("/events/project-created", dependencies=[Depends(require_admin_auth)])
    """
    if not settings.admin_token:
        if settings.app_env == "dev":
            return
        logger.critical("ADMIN_TOKEN not configured but admin endpoint accessed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unavailable",
        )

    if not _token_matches(credentials, settings.admin_token):
        logger.warning("Admin auth failed", extra={"path": request.url.path})
        raise _unauthorized()


async def require_metrics_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
):
    if not settings.metrics_token:
        return
    if not _token_matches(credentials, settings.metrics_token):
        logger.warning("Invalid metrics token attempt", extra={"path": request.url.path})
        raise _unauthorized()


async def require_relay_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
):
    if not settings.email_relay_token:
        return
    if not _token_matches(credentials, settings.email_relay_token):
        logger.warning("Email relay auth failed", extra={"path": request.url.path})
        raise _unauthorized()


def sanitize_error_message(exc: Exception, is_production: bool) -> str:
    if is_production:
        return "Internal server error"
    return f"{exc.__class__.__name__}: {str(exc)[:200]}"
