# fundiflow_notify/infra/metrics.py
"""
In-process counters and histograms, exposed as JSON on ``GET /metrics``.

Keys are ``name{label=value,...}`` with labels sorted, e.g.
``notifications_email_total{provider=smtp,status=sent}``.
"""
from __future__ import annotations
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Dict

from fundiflow_notify.infra.logging_config import get_logger

logger = get_logger(__name__)

# Histograms keep the most recent samples only; a long-running service
# would otherwise grow without bound.
HISTOGRAM_WINDOW = 1000


class Histogram:
    """Sliding window of observed values (dispatch and request durations)"""

    def __init__(self, window: int = HISTOGRAM_WINDOW):
        self.values: deque[float] = deque(maxlen=window)
        self.count = 0

    def observe(self, value: float) -> None:
        self.values.append(value)
        self.count += 1

    def get_stats(self) -> dict:
        if not self.values:
            return {"count": 0, "min": 0, "max": 0, "avg": 0, "p50": 0, "p95": 0, "p99": 0}

        ordered = sorted(self.values)
        n = len(ordered)

        def percentile(p: float) -> float:
            return ordered[min(int(n * p), n - 1)]

        return {
            "count": self.count,
            "min": ordered[0],
            "max": ordered[-1],
            "avg": sum(ordered) / n,
            "p50": percentile(0.50),
            "p95": percentile(0.95),
            "p99": percentile(0.99),
        }


class MetricsCollector:
    def __init__(self):
        self._counters: Dict[str, int] = defaultdict(int)
        self._histograms: Dict[str, Histogram] = defaultdict(Histogram)
        self._lock = Lock()

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] += amount

    def observe_histogram(self, name: str, value: float, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._histograms[key].observe(value)

    def get_counter(self, name: str, **labels) -> int:
        """Current value of one counter (0 if never incremented)"""
        key = self._make_key(name, labels or None)
        with self._lock:
            return self._counters.get(key, 0)

    def get_metrics(self) -> dict:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "histograms": {k: h.get_stats() for k, h in self._histograms.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
        logger.debug("Metrics reset")

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """``with Timer("dispatch_duration_seconds", event_type=...):`` records elapsed seconds"""

    def __init__(self, metric_name: str, **labels):
        self.metric_name = metric_name
        self.labels = labels
        self._started = 0.0

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        observe_histogram(self.metric_name, time.perf_counter() - self._started, **self.labels)


class NotificationMetrics:
    """Named metrics for the dispatch path, transports, storage and HTTP"""

    @staticmethod
    def dispatched(event_type: str, recipients: int) -> None:
        inc_counter("dispatches_total", event_type=event_type)
        inc_counter("dispatch_recipients_total", recipients, event_type=event_type)

    @staticmethod
    def track_dispatch_time(event_type: str) -> Timer:
        return Timer("dispatch_duration_seconds", event_type=event_type)

    @staticmethod
    def in_app(status: str) -> None:
        inc_counter("notifications_in_app_total", status=status)

    @staticmethod
    def email(status: str, provider: str | None = None) -> None:
        labels = {"status": status}
        if provider:
            labels["provider"] = provider
        inc_counter("notifications_email_total", **labels)

    @staticmethod
    def channel_timeout(channel: str) -> None:
        inc_counter("notification_channel_timeouts_total", channel=channel)

    @staticmethod
    def database_error(operation: str) -> None:
        inc_counter("database_errors_total", operation=operation)

    @staticmethod
    def http_request(method: str, status_code: int, duration_seconds: float) -> None:
        status_class = f"{status_code // 100}xx"
        inc_counter("http_requests_total", method=method, status=status_class)
        observe_histogram("http_request_duration_seconds", duration_seconds, method=method)
