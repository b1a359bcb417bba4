"""
CLI command implementations.

Each command returns the process exit status:
- run: one sync pass (0 on success, 1 on a failed pass)
- schedule: periodic passes until interrupted
- check: liveness check of both stores
"""

import argparse
import json
import logging
from functools import partial

from roster_sync.config import SyncSettings
from roster_sync.scheduler import SyncScheduler, run_sync_pass, verify_connectivity
from roster_sync.sync.errors import SyncError
from roster_sync.utils.db_pool import get_source_pool, get_target_pool, initialize_pools
from roster_sync.utils.metrics import MetricsPublisher, SyncMetrics

from .credentials import load_settings

logger = logging.getLogger(__name__)


def _connect(settings: SyncSettings) -> None:
    initialize_pools(
        source_config=settings.source_pool_config(),
        target_config=settings.target_pool_config(),
    )
    verify_connectivity()


def cmd_check(args: argparse.Namespace) -> int:
    """
    Check that both stores answer and print the pool state

    Args:
        args: Parsed command-line arguments
    """
    settings = load_settings(args)

    try:
        _connect(settings)
    except SyncError as e:
        logger.error(f"Liveness check failed: {e}")
        return 1

    logger.info("Both stores are reachable")
    print(json.dumps(
        {"source": get_source_pool().get_stats(), "target": get_target_pool().get_stats()},
        indent=2,
    ))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run a single sync pass

    Args:
        args: Parsed command-line arguments
    """
    settings = load_settings(args)
    logger.info("Starting roster sync run")

    try:
        _connect(settings)
        result = run_sync_pass(settings)
    except SyncError as e:
        logger.error(f"Sync run failed: {type(e).__name__}: {e}")
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


def cmd_schedule(args: argparse.Namespace) -> int:
    """
    Sync immediately, then on a fixed interval until interrupted

    Args:
        args: Parsed command-line arguments
    """
    settings = load_settings(args)
    logger.info("Setting up roster sync scheduler")

    if settings.metrics_port:
        MetricsPublisher(port=settings.metrics_port).start()

    try:
        _connect(settings)
    except SyncError as e:
        logger.error(f"Liveness check failed, not scheduling: {e}")
        return 1

    scheduler = SyncScheduler(
        partial(run_sync_pass, settings),
        interval_minutes=settings.interval_minutes,
        metrics=SyncMetrics(),
    )

    logger.info("Starting scheduler (press Ctrl+C to stop)")
    scheduler.start()
    return 0
