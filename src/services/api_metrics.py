# -*- coding: utf-8 -*-
"""Remote search call metrics.

Counts calls, failures and latencies per remote endpoint, and how many
responses arrived after a newer request had superseded them.
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime, UTC
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger(__name__)


@dataclass
class EndpointMetrics:
    """Counters for one remote endpoint."""

    total_calls: int = 0
    success_count: int = 0
    error_count: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    last_error: str | None = None

    @property
    def avg_latency_ms(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.total_latency_ms / self.total_calls

    @property
    def error_rate(self) -> float:
        """Failed calls as a percentage of all calls."""
        if self.total_calls == 0:
            return 0.0
        return (self.error_count / self.total_calls) * 100

    def as_dict(self, endpoint: str) -> dict:
        return {
            "endpoint": endpoint,
            "calls": self.total_calls,
            "errors": self.error_count,
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "max_latency_ms": round(self.max_latency_ms, 2),
            "last_error": self.last_error,
        }


class ApiMetricsService:
    """Thread-safe counters for the suggestion and result sources.

    Calls are recorded from worker threads (the HTTP client runs inside
    `asyncio.to_thread`) while stale responses are recorded from the event
    loop, hence the lock.

    Example:
        ```python
        metrics = ApiMetricsService()
        metrics.record_call("/search/", success=True, latency_ms=42.0)
        metrics.record_stale_response("results")
        metrics.get_stats()["stale_responses"]  # 1
        ```
    """

    def __init__(self):
        self._lock = Lock()
        self._endpoints: dict[str, EndpointMetrics] = defaultdict(EndpointMetrics)
        self._stale: Counter[str] = Counter()
        self._started_at = datetime.now(UTC)

    def record_call(
        self,
        endpoint: str,
        success: bool = True,
        latency_ms: float = 0.0,
        error: str | None = None,
    ):
        """Record one remote call.

        Args:
            endpoint: Remote endpoint path (e.g. "/search/suggestions/")
            success: Whether the call returned a usable response
            latency_ms: Wall time of the call
            error: Failure description, kept as the endpoint's last error
        """
        with self._lock:
            metrics = self._endpoints[endpoint]
            metrics.total_calls += 1
            metrics.total_latency_ms += latency_ms
            metrics.max_latency_ms = max(metrics.max_latency_ms, latency_ms)
            if success:
                metrics.success_count += 1
            else:
                metrics.error_count += 1
                metrics.last_error = error

    def record_stale_response(self, kind: str = "results"):
        """Record a response dropped because a newer request superseded it."""
        with self._lock:
            self._stale[kind] += 1

    def get_endpoint_metrics(self, endpoint: str) -> EndpointMetrics:
        with self._lock:
            return self._endpoints.get(endpoint, EndpointMetrics())

    def get_stats(self) -> dict:
        """Aggregate counters across endpoints.

        Endpoints are listed busiest first.
        """
        with self._lock:
            endpoints = sorted(
                self._endpoints.items(),
                key=lambda item: item[1].total_calls,
                reverse=True,
            )
            calls = sum(m.total_calls for _, m in endpoints)
            errors = sum(m.error_count for _, m in endpoints)
            latency = sum(m.total_latency_ms for _, m in endpoints)

            return {
                "uptime_seconds": int((datetime.now(UTC) - self._started_at).total_seconds()),
                "started_at": self._started_at.isoformat(),
                "total_calls": calls,
                "total_errors": errors,
                "error_rate_percent": round(errors / calls * 100, 2) if calls else 0,
                "avg_latency_ms": round(latency / calls, 2) if calls else 0,
                "stale_responses": sum(self._stale.values()),
                "stale_by_kind": dict(self._stale),
                "endpoints": [m.as_dict(endpoint) for endpoint, m in endpoints],
            }

    def reset(self):
        with self._lock:
            self._endpoints.clear()
            self._stale.clear()
            self._started_at = datetime.now(UTC)


# Singleton instance
_metrics_instance: ApiMetricsService | None = None


def get_api_metrics() -> ApiMetricsService:
    """Get the global metrics instance.

    Returns:
        The singleton ApiMetricsService
    """
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = ApiMetricsService()
    return _metrics_instance
