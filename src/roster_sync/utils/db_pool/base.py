"""
Base class for the store connection pools.

Connections are checked on acquire (idle time, lifetime, ``SELECT 1``)
and recycled when stale. Pool sizes and waits are exported as
Prometheus metrics labelled by store.
"""

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from queue import Empty, Queue
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Gauge, Histogram

from roster_sync.utils.metrics import get_or_create_metric
from roster_sync.utils.tracing import trace_operation

logger = logging.getLogger(__name__)


CONNECTION_POOL_SIZE = get_or_create_metric(
    lambda: Gauge(
        "roster_sync_db_pool_size",
        "Open connections in the pool",
        ["database_type", "pool_name"],
    ),
    "roster_sync_db_pool_size",
)

CONNECTION_POOL_IDLE = get_or_create_metric(
    lambda: Gauge(
        "roster_sync_db_pool_idle",
        "Idle connections in the pool",
        ["database_type", "pool_name"],
    ),
    "roster_sync_db_pool_idle",
)

CONNECTION_POOL_ERRORS = get_or_create_metric(
    lambda: Counter(
        "roster_sync_db_pool_errors_total",
        "Connection pool errors",
        ["database_type", "pool_name", "error_type"],
    ),
    "roster_sync_db_pool_errors_total",
)

CONNECTION_ACQUIRE_TIME = get_or_create_metric(
    lambda: Histogram(
        "roster_sync_db_pool_acquire_seconds",
        "Time to acquire a connection from the pool",
        ["database_type", "pool_name"],
        buckets=[0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
    ),
    "roster_sync_db_pool_acquire_seconds",
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class PooledConnection:
    """A pooled connection and its bookkeeping."""

    connection: Any
    created_at: datetime = field(default_factory=_utcnow)
    last_used: datetime = field(default_factory=_utcnow)
    use_count: int = 0

    def mark_used(self) -> None:
        self.last_used = _utcnow()
        self.use_count += 1


class ConnectionPoolError(Exception):
    """Base exception for connection pool errors."""


class ConnectionFailedError(ConnectionPoolError):
    """Raised when the driver cannot open a new connection."""


class PoolExhaustedError(ConnectionPoolError):
    """Raised when no connection frees up within the acquire timeout."""


class PoolClosedError(ConnectionPoolError):
    """Raised when acquiring from a closed pool."""


class BaseConnectionPool:
    """
    Bounded pool of database connections

    Subclasses implement ``_create_connection``, ``_is_connection_healthy``,
    ``_close_connection`` and ``_get_db_type``.
    """

    def __init__(
        self,
        min_size: int = 0,
        max_size: int = 2,
        max_idle_time: int = 300,
        max_lifetime: int = 3600,
        acquire_timeout: float = 30.0,
        pool_name: str = "default",
    ):
        """
        Args:
            min_size: Connections opened eagerly
            max_size: Upper bound on open connections
            max_idle_time: Seconds a connection may sit idle before recycling
            max_lifetime: Seconds a connection may live before recycling
            acquire_timeout: Seconds to wait for a free connection
            pool_name: Pool label for logs and metrics
        """
        if max_size < 1 or min_size < 0 or min_size > max_size:
            raise ValueError(f"Invalid pool size: min={min_size}, max={max_size}")

        self.min_size = min_size
        self.max_size = max_size
        self.max_idle_time = timedelta(seconds=max_idle_time)
        self.max_lifetime = timedelta(seconds=max_lifetime)
        self.acquire_timeout = acquire_timeout
        self.pool_name = pool_name

        self._pool: Queue[PooledConnection] = Queue(maxsize=max_size)
        self._all_connections: list[PooledConnection] = []
        self._lock = threading.RLock()
        self._closed = False
        self._discarded: set[int] = set()

        with self._lock:
            for _ in range(min_size):
                pooled = self._open()
                self._pool.put(pooled)
            self._update_metrics()

        logger.info(
            f"Initialized {self.__class__.__name__} '{pool_name}' "
            f"(min={min_size}, max={max_size})"
        )

    def _create_connection(self) -> Any:
        raise NotImplementedError

    def _is_connection_healthy(self, conn: Any) -> bool:
        raise NotImplementedError

    def _close_connection(self, conn: Any) -> None:
        raise NotImplementedError

    def _get_db_type(self) -> str:
        raise NotImplementedError

    def _count_error(self, error_type: str) -> None:
        CONNECTION_POOL_ERRORS.labels(
            database_type=self._get_db_type(),
            pool_name=self.pool_name,
            error_type=error_type,
        ).inc()

    def _open(self) -> PooledConnection:
        """Open a connection and register it; caller holds the lock."""
        try:
            conn = self._create_connection()
        except Exception as e:
            self._count_error("creation")
            raise ConnectionFailedError(
                f"Could not open {self._get_db_type()} connection for pool "
                f"'{self.pool_name}': {e}"
            ) from e

        pooled = PooledConnection(connection=conn)
        self._all_connections.append(pooled)
        return pooled

    def _is_usable(self, pooled: PooledConnection) -> bool:
        now = _utcnow()
        if now - pooled.created_at > self.max_lifetime:
            logger.debug("Connection exceeded max lifetime, recycling")
            return False
        if now - pooled.last_used > self.max_idle_time:
            logger.debug("Connection exceeded max idle time, recycling")
            return False

        try:
            return self._is_connection_healthy(pooled.connection)
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            self._count_error("health_check")
            return False

    def _recycle(self, pooled: PooledConnection) -> None:
        try:
            self._close_connection(pooled.connection)
        except Exception as e:
            logger.warning(f"Error closing connection: {e}")
        finally:
            with self._lock:
                if pooled in self._all_connections:
                    self._all_connections.remove(pooled)
                self._update_metrics()

    def _update_metrics(self) -> None:
        labels = {"database_type": self._get_db_type(), "pool_name": self.pool_name}
        CONNECTION_POOL_SIZE.labels(**labels).set(len(self._all_connections))
        CONNECTION_POOL_IDLE.labels(**labels).set(self._pool.qsize())

    def _checkout(self) -> PooledConnection:
        deadline = time.monotonic() + self.acquire_timeout

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._count_error("timeout")
                raise PoolExhaustedError(
                    f"No connection available in pool '{self.pool_name}' "
                    f"within {self.acquire_timeout}s"
                )

            pooled: PooledConnection | None = None
            try:
                pooled = self._pool.get_nowait()
            except Empty:
                with self._lock:
                    if len(self._all_connections) < self.max_size:
                        pooled = self._open()

            if pooled is None:
                try:
                    pooled = self._pool.get(timeout=remaining)
                except Empty:
                    continue

            if self._is_usable(pooled):
                return pooled

            logger.info("Connection unhealthy, recycling and retrying")
            self._recycle(pooled)

    @contextmanager
    def acquire(self) -> Iterator[Any]:
        """
        Borrow a connection for the duration of a ``with`` block

        Raises:
            PoolClosedError: If the pool is closed
            ConnectionFailedError: If a needed connection cannot be opened
            PoolExhaustedError: If no connection frees up in time
        """
        if self._closed:
            raise PoolClosedError(f"Connection pool '{self.pool_name}' is closed")

        start = time.monotonic()
        with trace_operation(
            "db_pool_acquire",
            kind=trace.SpanKind.CLIENT,
            database_type=self._get_db_type(),
            pool_name=self.pool_name,
        ):
            pooled = self._checkout()

        pooled.mark_used()
        CONNECTION_ACQUIRE_TIME.labels(
            database_type=self._get_db_type(), pool_name=self.pool_name
        ).observe(time.monotonic() - start)
        self._update_metrics()

        try:
            yield pooled.connection
        finally:
            with self._lock:
                discarded = id(pooled.connection) in self._discarded
                self._discarded.discard(id(pooled.connection))

            if self._closed:
                self._recycle(pooled)
            elif discarded:
                # the close may wait on a statement still running in another thread
                with self._lock:
                    if pooled in self._all_connections:
                        self._all_connections.remove(pooled)
                threading.Thread(
                    target=self._recycle,
                    args=(pooled,),
                    name=f"{self.pool_name}-discard",
                    daemon=True,
                ).start()
            else:
                self._pool.put(pooled)
                self._update_metrics()

    def discard(self, connection: Any) -> None:
        """
        Close a borrowed connection on release instead of returning it

        For connections left in an unknown state, such as one whose
        query was abandoned mid-flight.
        """
        with self._lock:
            if any(p.connection is connection for p in self._all_connections):
                self._discarded.add(id(connection))
                logger.warning(f"Connection in pool '{self.pool_name}' marked for discard")

    def close(self) -> None:
        """Close every connection; later acquires raise PoolClosedError."""
        if self._closed:
            return

        logger.info(f"Closing connection pool '{self.pool_name}'")
        self._closed = True

        with self._lock:
            for pooled in self._all_connections:
                try:
                    self._close_connection(pooled.connection)
                except Exception as e:
                    logger.warning(f"Error closing connection: {e}")
            self._all_connections.clear()

            while True:
                try:
                    self._pool.get_nowait()
                except Empty:
                    break
            self._update_metrics()

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            total = len(self._all_connections)
            idle = self._pool.qsize()
            return {
                "pool_name": self.pool_name,
                "total_connections": total,
                "idle_connections": idle,
                "active_connections": total - idle,
                "min_size": self.min_size,
                "max_size": self.max_size,
                "closed": self._closed,
            }
