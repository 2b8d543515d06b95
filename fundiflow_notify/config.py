# fundiflow_notify/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    app_url: str = "http://localhost:3000"  # Base URL used for action links in notifications and emails
    app_name: str = "FundiFlow"

    # Database
    expected_schema_version: str = "002_notification_indexes.sql"  # Update on deploy when new migrations are added
    database_url: str | None = None
    pghost: str = "localhost"
    pgport: int = 5432
    pguser: str = "postgres"
    pgpassword: str = ""
    pgdatabase: str = "postgres"
    pg_pool_min: int = 2
    pg_pool_max: int = 20
    pg_connect_timeout: int = 5
    pg_statement_timeout_ms: int = 30000
    pg_idle_in_tx_timeout_ms: int = 30000

    # Security
    admin_token: str | None = None  # Bearer token for event/job endpoints (called by the CRUD layer)
    metrics_token: str | None = None  # Optional token for /metrics
    allowed_origins: list[str] = ["*"]

    # Email Transport
    # "console"   - log emails instead of sending (dev/test)
    # "smtp"      - direct authenticated SMTP relay
    # "api-relay" - POST to an HTTP endpoint that owns the SMTP credentials
    email_provider: Literal["console", "smtp", "api-relay"] = "console"
    from_email: str = "notifications@fundiflow.com"
    from_name: str = "FundiFlow"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    email_relay_endpoint: str | None = None  # e.g., https://dashboard.example.com/api/send-email
    email_relay_token: str | None = None  # Optional bearer token sent to the relay endpoint
    email_timeout_seconds: float = 10.0  # Keep below dispatch_channel_timeout_seconds
    email_footer_enabled: bool = True  # Append preference/unsubscribe footer to outgoing emails

    # Dispatch
    dispatch_max_concurrency: int = 20  # Max channel calls (in-app or email) in flight within one dispatch
    dispatch_channel_timeout_seconds: float = 15.0  # Per channel call; timeout counts as a failed delivery
    dispatch_pool_max_pending: int = 100  # Max detached (fire-and-forget) dispatches in flight

    # Deadline Scanner
    deadline_horizon_days: int = 3
    deadline_scan_enabled: bool = False  # Run the in-process periodic scanner (otherwise use the CLI / cron)
    deadline_scan_interval_seconds: float = 86400.0  # Once a day

    # Monitoring
    enable_metrics: bool = True
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url

        return (
            f"postgresql://{self.pguser}:{self.pgpassword}@{self.pghost}:{self.pgport}/{self.pgdatabase}"
        )

    @property
    def smtp_configured(self) -> bool:
        """Check if SMTP credentials are present"""
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)

    def validate_email_config(self) -> list[str]:
        """Return missing settings for the selected email provider (empty = OK)"""
        missing = []

        if self.email_provider == "smtp":
            for field_name, value in (
                ("smtp_host", self.smtp_host),
                ("smtp_user", self.smtp_user),
                ("smtp_pass", self.smtp_pass),
            ):
                if not value:
                    missing.append(field_name)
        elif self.email_provider == "api-relay":
            if not self.email_relay_endpoint:
                missing.append("email_relay_endpoint")

        if "@" not in self.from_email:
            missing.append("from_email")

        return missing

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []

        if not self.admin_token:
            missing.append("admin_token")

        if self.email_provider == "console":
            missing.append("email_provider (console is not allowed in production)")

        missing.extend(self.validate_email_config())
        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    if s.enable_metrics and not s.metrics_token:
        warnings.append("enable_metrics=True but metrics_token is not set: /metrics is unauthenticated.")

    if s.email_provider != "console":
        for name in s.validate_email_config():
            warnings.append(f"email_provider={s.email_provider} but {name} is missing.")

    if s.dispatch_max_concurrency > 100:
        warnings.append(
            f"dispatch_max_concurrency={s.dispatch_max_concurrency} may open too many SMTP connections."
        )

    if s.email_timeout_seconds >= s.dispatch_channel_timeout_seconds:
        warnings.append(
            f"email_timeout_seconds={s.email_timeout_seconds} is not below "
            f"dispatch_channel_timeout_seconds={s.dispatch_channel_timeout_seconds}: "
            "slow sends are cut off by the dispatcher before the provider gives up."
        )

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")


settings = Settings()
validate_or_warn(settings)
