"""
Job functions called by the scheduler and the CLI.

``run_sync_pass`` borrows one connection per store from the process
pools for the duration of a pass. ``verify_connectivity`` is the startup
liveness check.
"""

import logging
from contextlib import ExitStack
from typing import Any

from roster_sync.config import SyncSettings
from roster_sync.sync.applier import Applier
from roster_sync.sync.engine import SyncEngine
from roster_sync.sync.errors import SourceUnavailable, SyncError, TargetUnavailable
from roster_sync.sync.models import SyncResult
from roster_sync.sync.readers import SourceReader, TargetReader
from roster_sync.utils.db_pool import (
    BaseConnectionPool,
    ConnectionPoolError,
    get_source_pool,
    get_target_pool,
)
from roster_sync.utils.retry import retry_database_operation

logger = logging.getLogger(__name__)


def build_engine(settings: SyncSettings, source_conn: Any, target_conn: Any) -> SyncEngine:
    """Wire readers and applier for one pass over the given connections."""
    return SyncEngine(
        source_reader=SourceReader(
            source_conn,
            schema=settings.source_schema,
            activity=settings.activity,
        ),
        target_reader=TargetReader(target_conn, schema=settings.target_schema),
        applier=Applier(
            target_conn,
            tag_id=settings.tag_id,
            subject_type=settings.subject_type,
            schema=settings.target_schema,
            transactional=settings.transactional,
        ),
        run_timeout=settings.run_timeout,
    )


def run_sync_pass(settings: SyncSettings) -> SyncResult:
    """
    Run one sync pass on pooled connections

    Connections whose read was abandoned at the run timeout are discarded
    rather than returned to their pool.

    Raises:
        SourceUnavailable: If no source connection can be obtained
        TargetUnavailable: If no target connection can be obtained
        SyncError: If the pass itself fails
    """
    source_pool, target_pool = get_source_pool(), get_target_pool()

    with ExitStack() as stack:
        try:
            source_conn = stack.enter_context(source_pool.acquire())
        except ConnectionPoolError as e:
            raise SourceUnavailable(f"No source connection: {e}") from e

        try:
            target_conn = stack.enter_context(target_pool.acquire())
        except ConnectionPoolError as e:
            raise TargetUnavailable(f"No target connection: {e}") from e

        engine = build_engine(settings, source_conn, target_conn)
        try:
            result = engine.run()
        except SyncError:
            if "source" in engine.abandoned_stores:
                source_pool.discard(source_conn)
            if "target" in engine.abandoned_stores:
                target_pool.discard(target_conn)
            raise

    logger.debug(f"Sync pass result: {result.to_dict()}")
    return result


@retry_database_operation(max_retries=3, base_delay=1.0)
def ping_store(pool: BaseConnectionPool) -> None:
    """Run ``SELECT 1`` on a pooled connection."""
    with pool.acquire() as conn:
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        finally:
            cursor.close()


def verify_connectivity(
    source_pool: BaseConnectionPool | None = None,
    target_pool: BaseConnectionPool | None = None,
) -> None:
    """
    Liveness check against both stores

    Transient errors are retried with backoff before giving up.

    Raises:
        SourceUnavailable: If the source store does not answer
        TargetUnavailable: If the target store does not answer
    """
    source_pool = source_pool or get_source_pool()
    target_pool = target_pool or get_target_pool()

    try:
        ping_store(source_pool)
    except Exception as e:
        raise SourceUnavailable(f"Source store liveness check failed: {e}") from e
    logger.info("Source store is reachable")

    try:
        ping_store(target_pool)
    except Exception as e:
        raise TargetUnavailable(f"Target store liveness check failed: {e}") from e
    logger.info("Target store is reachable")
