"""
Prometheus metrics for roster-sync

Usage:
    from roster_sync.utils.metrics import MetricsPublisher, SyncMetrics

    MetricsPublisher(port=9091).start()
    metrics = SyncMetrics()
    metrics.record_run(success=True, duration=1.8, added=3, removed=1)
"""

import logging
import time
from typing import Callable, TypeVar

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Create a metric, or return the one already registered under ``metric_name``

    Example:
        RUNS = get_or_create_metric(
            lambda: Counter("roster_sync_runs_total", "Sync passes", ["status"]),
            "roster_sync_runs_total",
        )
    """
    try:
        return metric_factory()
    except ValueError:
        existing = registry._names_to_collectors.get(metric_name)
        if existing is not None:
            return existing
        raise


class SyncMetrics:
    """
    Counters and gauges describing sync passes

    Tracks passes by outcome, pass duration, members added and removed,
    the time of the last successful pass and timer fires dropped because
    a pass was still running.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or REGISTRY
        registry = self.registry

        self.runs_total = get_or_create_metric(
            lambda: Counter(
                "roster_sync_runs_total",
                "Total number of sync passes",
                ["status"],
                registry=registry,
            ),
            "roster_sync_runs_total",
            registry,
        )
        self.duration_seconds = get_or_create_metric(
            lambda: Histogram(
                "roster_sync_duration_seconds",
                "Duration of sync passes in seconds",
                buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
                registry=registry,
            ),
            "roster_sync_duration_seconds",
            registry,
        )
        self.members_added_total = get_or_create_metric(
            lambda: Counter(
                "roster_sync_members_added_total",
                "Members created in the target store",
                registry=registry,
            ),
            "roster_sync_members_added_total",
            registry,
        )
        self.members_removed_total = get_or_create_metric(
            lambda: Counter(
                "roster_sync_members_removed_total",
                "Members deleted from the target store",
                registry=registry,
            ),
            "roster_sync_members_removed_total",
            registry,
        )
        self.last_success_timestamp = get_or_create_metric(
            lambda: Gauge(
                "roster_sync_last_success_timestamp",
                "Unix time of the last successful sync pass",
                registry=registry,
            ),
            "roster_sync_last_success_timestamp",
            registry,
        )
        self.fires_dropped_total = get_or_create_metric(
            lambda: Counter(
                "roster_sync_fires_dropped_total",
                "Timer fires dropped because a pass was still running",
                registry=registry,
            ),
            "roster_sync_fires_dropped_total",
            registry,
        )

    def record_run(
        self,
        success: bool,
        duration: float,
        added: int = 0,
        removed: int = 0,
    ) -> None:
        """
        Record the outcome of one sync pass

        Args:
            success: Whether the pass completed
            duration: Pass duration in seconds
            added: Members created (ignored for failed passes)
            removed: Members deleted (ignored for failed passes)
        """
        status = "success" if success else "failed"
        self.runs_total.labels(status=status).inc()
        self.duration_seconds.observe(duration)

        if success:
            self.members_added_total.inc(added)
            self.members_removed_total.inc(removed)
            self.last_success_timestamp.set(time.time())

    def record_dropped_fire(self) -> None:
        self.fires_dropped_total.inc()


class MetricsPublisher:
    """Serves the registry on ``/metrics`` over HTTP."""

    def __init__(self, port: int = 9091, registry: CollectorRegistry | None = None):
        self.port = port
        self.registry = registry or REGISTRY
        self._server_started = False

    def start(self) -> None:
        if self._server_started:
            logger.warning(f"Metrics server already running on port {self.port}")
            return

        try:
            start_http_server(self.port, registry=self.registry)
        except OSError as e:
            logger.error(f"Metrics server could not bind port {self.port}: {e}")
            raise

        self._server_started = True
        logger.info(f"Metrics server started on port {self.port}")
