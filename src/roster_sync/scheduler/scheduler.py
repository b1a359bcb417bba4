"""
APScheduler-based sync scheduler.

Runs one pass at startup, then one per interval. Passes never overlap:
a timer fire that arrives while a pass is running is dropped and counted.
"""

import enum
import logging
import threading
import time
from typing import Callable

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from roster_sync.sync.errors import SyncError
from roster_sync.sync.models import SyncResult
from roster_sync.utils.metrics import SyncMetrics

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class SyncScheduler:
    """
    Periodic driver for sync passes

    The scheduler owns an explicit IDLE/RUNNING state. ``tick`` moves it
    to RUNNING for the duration of one pass and always back to IDLE,
    whether the pass succeeded or failed.
    """

    def __init__(
        self,
        run_pass: Callable[[], SyncResult],
        interval_minutes: int,
        metrics: SyncMetrics | None = None,
        job_id: str = "roster-sync",
    ):
        """
        Args:
            run_pass: Callable running one complete pass
            interval_minutes: Minutes between timer fires
            metrics: Optional Prometheus recorder for pass outcomes
            job_id: APScheduler job identifier

        Raises:
            ValueError: If the interval is not a positive integer
        """
        if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int) \
                or interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be a positive integer, got {interval_minutes!r}")

        self.run_pass = run_pass
        self.interval_minutes = interval_minutes
        self.metrics = metrics
        self.job_id = job_id
        self.scheduler = BlockingScheduler()

        self._state = SchedulerState.IDLE
        self._state_lock = threading.Lock()

        self.completed_runs = 0
        self.failed_runs = 0
        self.dropped_fires = 0
        self.last_result: SyncResult | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    def _try_begin(self) -> bool:
        with self._state_lock:
            if self._state is SchedulerState.RUNNING:
                self.dropped_fires += 1
                return False
            self._state = SchedulerState.RUNNING
            return True

    def _finish(self) -> None:
        with self._state_lock:
            self._state = SchedulerState.IDLE

    def tick(self) -> bool:
        """
        Run one pass unless one is already running

        Returns:
            True if the pass completed, False if it failed or the fire was dropped
        """
        if not self._try_begin():
            if self.metrics:
                self.metrics.record_dropped_fire()
            logger.warning("Previous sync pass still running, dropping this timer fire")
            return False

        start = time.monotonic()
        success = False
        result: SyncResult | None = None
        try:
            result = self.run_pass()
            success = True
        except SyncError as e:
            logger.error(f"Sync pass failed: {type(e).__name__}: {e}")
        except Exception as e:
            logger.exception(f"Sync pass failed unexpectedly: {e}")
        finally:
            duration = time.monotonic() - start
            if success:
                self.completed_runs += 1
                self.last_result = result
            else:
                self.failed_runs += 1

            if self.metrics:
                self.metrics.record_run(
                    success=success,
                    duration=duration,
                    added=result.added if result else 0,
                    removed=result.removed if result else 0,
                )
            self._finish()

        if success:
            logger.info(f"Sync pass completed in {duration:.2f}s")
        return success

    def start(self) -> None:
        """
        Run the first pass, then block running one pass per interval

        Use Ctrl+C to stop.
        """
        logger.info(f"Starting roster sync scheduler (every {self.interval_minutes} minute(s))")

        self.tick()

        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=self.job_id,
            max_instances=2,
            coalesce=True,
            replace_existing=True,
        )

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped by user")
            self.stop()

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info(
            f"Scheduler stopped ({self.completed_runs} completed, "
            f"{self.failed_runs} failed, {self.dropped_fires} dropped)"
        )
