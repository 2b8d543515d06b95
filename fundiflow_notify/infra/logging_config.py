# fundiflow_notify/infra/logging_config.py
import logging
import sys
import json
from datetime import datetime, timezone


# Record attributes copied into JSON output and shown in console output.
# Console labels are the short form used in dev logs.
_CONTEXT_FIELDS = {
    "request_id": "req",
    "event_type": "event",
    "user_id": "user",
    "notification_id": "notification",
    "channel": "channel",
}


def _context_of(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in _CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers in staging/prod"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_data.update(_context_of(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured single-line output for local development"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        # request ids are noise on the console; JSON output keeps them
        context = " ".join(
            f"{_CONTEXT_FIELDS[name]}={value}"
            for name, value in _context_of(record).items()
            if name != "request_id"
        )
        context = f" [{context}]" if context else ""

        line = (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{record.name}{context} - {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", use_json: bool = False) -> None:
    """
    Configure the root logger (stdout, one handler)

    Args:
        level: Log level name
        use_json: JSON lines instead of coloured console output
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if use_json else ConsoleFormatter())

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for noisy in ("uvicorn.access", "asyncpg", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, json={use_json}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext(logging.LoggerAdapter):
    """
    Logger that stamps fixed context fields on every record.

        log = LogContext(logger, event_type="project_created")
        log.info("Dispatch started", extra={"user_id": user_id})

    Fields passed as None are left out; per-call ``extra`` is merged on top.
    """

    def __init__(self, logger: logging.Logger, **context):
        super().__init__(logger, {k: v for k, v in context.items() if v is not None})

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def mask_email(email: str | None) -> str:
    """Mask an email address for logging: ``jane.doe@example.com`` -> ``ja***@example.com``"""
    if not email or "@" not in email:
        return "***"
    local, _, domain = email.partition("@")
    return f"{local[:2]}***@{domain}"
