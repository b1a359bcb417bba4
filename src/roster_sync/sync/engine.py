"""
One sync pass: read both stores, compute the delta, apply it.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import UTC, datetime

from roster_sync.utils.tracing import add_span_attributes, trace_operation

from .applier import Applier
from .delta import compute_delta
from .errors import SourceUnavailable, SyncError, TargetUnavailable
from .models import SourceMember, SyncResult, TargetMember
from .readers import SourceReader, TargetReader

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Runs the reconciliation pipeline once per call to ``run``

    The two readers run concurrently and must both finish within
    ``run_timeout`` seconds; the delta is applied only after both
    succeeded. A read still running when the pass fails is cancelled and
    left behind; its store is listed in ``abandoned_stores``.
    """

    def __init__(
        self,
        source_reader: SourceReader,
        target_reader: TargetReader,
        applier: Applier,
        run_timeout: float = 300.0,
    ):
        self.source_reader = source_reader
        self.target_reader = target_reader
        self.applier = applier
        self.run_timeout = run_timeout
        self.abandoned_stores: tuple[str, ...] = ()

    def run(self) -> SyncResult:
        """
        Returns:
            Counts for the completed pass

        Raises:
            SyncError: Any failure; nothing is reported as partial success
        """
        started_at = datetime.now(UTC)

        with trace_operation("roster_sync.pass"):
            source_members, target_members = self._read_both()

            delta = compute_delta(source_members, target_members)
            logger.info(
                f"Delta computed: {len(delta.to_add)} to add, "
                f"{len(delta.to_remove)} to remove "
                f"(source={len(source_members)}, target={len(target_members)})"
            )
            if delta.is_empty:
                logger.info("Roster already in sync")

            applied = self.applier.apply(delta)
            add_span_attributes(added=applied.added, removed=applied.removed)

        logger.info(f"{applied.added} members added")
        logger.info(f"{applied.removed} members removed")

        return SyncResult(
            started_at=started_at,
            finished_at=datetime.now(UTC),
            source_count=len(source_members),
            target_count=len(target_members),
            added=applied.added,
            removed=applied.removed,
        )

    def _read_both(self) -> tuple[list[SourceMember], list[TargetMember]]:
        deadline = time.monotonic() + self.run_timeout
        self.abandoned_stores = ()

        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="roster-sync-read")
        source_future = executor.submit(self.source_reader.fetch)
        target_future = executor.submit(self.target_reader.fetch)
        try:
            source_members = self._await(source_future, deadline, SourceUnavailable, "source")
            target_members = self._await(target_future, deadline, TargetUnavailable, "target")
        except BaseException:
            self._abandon(
                ("source", source_future, self.source_reader),
                ("target", target_future, self.target_reader),
            )
            executor.shutdown(wait=False, cancel_futures=True)
            raise

        executor.shutdown(wait=True)
        return source_members, target_members

    def _abandon(self, *reads) -> None:
        """Cancel reads still in flight; their connections must not be reused."""
        abandoned = []
        for store, future, reader in reads:
            if future.done():
                continue
            abandoned.append(store)
            logger.warning(f"Abandoning the {store} read still in flight")
            try:
                reader.cancel()
            except Exception as e:
                logger.warning(f"Could not cancel the {store} read: {e}")
        self.abandoned_stores = tuple(abandoned)

    def _await(
        self,
        future: Future,
        deadline: float,
        error_cls: type[SyncError],
        store: str,
    ):
        try:
            return future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FuturesTimeoutError:
            raise error_cls(
                f"Reading the {store} store exceeded the {self.run_timeout:g}s run timeout"
            ) from None
