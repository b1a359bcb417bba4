"""
Unit tests for database connection pooling.

Tests connection pool behavior, health checks, recycling, and the
process-wide source/target pools.
"""

import time
from datetime import timedelta
from unittest.mock import MagicMock, Mock, patch

import pytest

from roster_sync.utils.db_pool import (
    BaseConnectionPool,
    ConnectionFailedError,
    ODBCConnectionPool,
    PoolClosedError,
    PooledConnection,
    PoolExhaustedError,
    PostgresConnectionPool,
    close_pools,
    get_source_pool,
    get_target_pool,
    initialize_pools,
)


class MockConnectionPool(BaseConnectionPool):
    """Mock implementation of BaseConnectionPool for testing."""

    def __init__(self, **kwargs):
        self.connections_created = 0
        self.connections_closed = 0
        self.health_check_calls = 0
        self.create_should_fail = False
        self.unhealthy_checks = 0
        super().__init__(**kwargs)

    def _create_connection(self):
        if self.create_should_fail:
            raise Exception("Connection creation failed")
        self.connections_created += 1
        return Mock(spec=["execute", "close"])

    def _is_connection_healthy(self, conn):
        self.health_check_calls += 1
        if self.unhealthy_checks:
            self.unhealthy_checks -= 1
            return False
        return True

    def _close_connection(self, conn):
        self.connections_closed += 1
        conn.close()

    def _get_db_type(self):
        return "mock"


@pytest.fixture(autouse=True)
def reset_global_pools():
    close_pools()
    yield
    close_pools()


# ============================================================================
# PooledConnection
# ============================================================================


class TestPooledConnection:
    """Test PooledConnection dataclass."""

    def test_initial_state(self):
        mock_conn = Mock()

        pooled = PooledConnection(connection=mock_conn)

        assert pooled.connection is mock_conn
        assert pooled.use_count == 0
        assert pooled.created_at.tzinfo is not None

    def test_mark_used_updates_timestamp(self):
        """Test that mark_used updates last_used timestamp and use_count."""
        pooled = PooledConnection(connection=Mock())
        pooled.last_used -= timedelta(minutes=5)
        old_last_used = pooled.last_used

        pooled.mark_used()

        assert pooled.last_used > old_last_used
        assert pooled.use_count == 1


# ============================================================================
# BaseConnectionPool
# ============================================================================


class TestBaseConnectionPool:
    """Test BaseConnectionPool functionality."""

    def test_initialization_creates_minimum_connections(self):
        pool = MockConnectionPool(min_size=2, max_size=3)

        stats = pool.get_stats()
        assert stats["total_connections"] == 2
        assert stats["idle_connections"] == 2
        assert pool.connections_created == 2

        pool.close()

    @pytest.mark.parametrize("min_size,max_size", [(0, 0), (-1, 2), (3, 2)])
    def test_invalid_sizes_rejected(self, min_size, max_size):
        with pytest.raises(ValueError, match="Invalid pool size"):
            MockConnectionPool(min_size=min_size, max_size=max_size)

    def test_lazy_pool_opens_on_first_acquire(self):
        pool = MockConnectionPool(min_size=0, max_size=2)
        assert pool.connections_created == 0

        with pool.acquire() as conn:
            assert conn is not None
            assert pool.get_stats()["active_connections"] == 1

        assert pool.connections_created == 1
        assert pool.get_stats()["idle_connections"] == 1

    def test_acquire_reuses_connections(self):
        """Test that connections are reused from pool."""
        pool = MockConnectionPool(min_size=1, max_size=2)

        seen = set()
        for _ in range(5):
            with pool.acquire() as conn:
                seen.add(id(conn))

        assert pool.connections_created == 1
        assert len(seen) == 1

    def test_acquire_marks_connection_used(self):
        pool = MockConnectionPool(min_size=1, max_size=1)

        with pool.acquire():
            pass
        with pool.acquire():
            pass

        assert pool._all_connections[0].use_count == 2

    def test_pool_exhausted_within_timeout(self):
        """Test PoolExhaustedError once max_size connections are out."""
        pool = MockConnectionPool(min_size=0, max_size=1, acquire_timeout=0.1)

        with pool.acquire():
            start = time.monotonic()
            with pytest.raises(PoolExhaustedError, match="within 0.1s"):
                with pool.acquire():
                    pass

        assert time.monotonic() - start < 2.0

    def test_create_failure_raises_connection_failed(self):
        pool = MockConnectionPool(min_size=0, max_size=1)
        pool.create_should_fail = True

        with pytest.raises(ConnectionFailedError, match="Could not open mock connection"):
            with pool.acquire():
                pass

    def test_create_failure_at_init_raises(self):
        class FailingPool(MockConnectionPool):
            def _create_connection(self):
                raise OSError("refused")

        with pytest.raises(ConnectionFailedError):
            FailingPool(min_size=1, max_size=1)

    def test_unhealthy_connection_recycled(self):
        pool = MockConnectionPool(min_size=1, max_size=1)
        pool.unhealthy_checks = 1

        with pool.acquire() as conn:
            assert conn is not None

        assert pool.connections_created == 2
        assert pool.connections_closed == 1
        assert pool.get_stats()["total_connections"] == 1

    def test_idle_connection_recycled(self):
        pool = MockConnectionPool(min_size=1, max_size=1, max_idle_time=300)
        pool._all_connections[0].last_used -= timedelta(hours=1)

        with pool.acquire():
            pass

        assert pool.connections_closed == 1
        assert pool.connections_created == 2
        # recycled before the health check
        assert pool.health_check_calls == 1

    def test_expired_connection_recycled(self):
        pool = MockConnectionPool(min_size=1, max_size=1, max_lifetime=60)
        pool._all_connections[0].created_at -= timedelta(minutes=5)

        with pool.acquire():
            pass

        assert pool.connections_closed == 1

    def test_health_check_exception_recycles(self):
        pool = MockConnectionPool(min_size=1, max_size=1)
        calls = []

        def flaky_check(conn):
            calls.append(conn)
            if len(calls) == 1:
                raise RuntimeError("server closed the connection")
            return True

        pool._is_connection_healthy = flaky_check

        with pool.acquire():
            pass

        assert len(calls) == 2
        assert pool.connections_closed == 1

    def test_acquire_after_close_raises(self):
        pool = MockConnectionPool(min_size=1, max_size=1)

        pool.close()

        with pytest.raises(PoolClosedError):
            with pool.acquire():
                pass
        assert pool.get_stats()["closed"] is True
        assert pool.get_stats()["total_connections"] == 0

    def test_close_is_idempotent(self):
        pool = MockConnectionPool(min_size=2, max_size=2)

        pool.close()
        pool.close()

        assert pool.connections_closed == 2

    def test_connection_released_after_close_is_closed(self):
        pool = MockConnectionPool(min_size=0, max_size=1)

        with pool.acquire() as conn:
            pool.close()

        conn.close.assert_called()
        assert pool.get_stats()["idle_connections"] == 0

    def test_discarded_connection_closed_not_reused(self):
        pool = MockConnectionPool(min_size=0, max_size=1)

        with pool.acquire() as conn:
            pool.discard(conn)

        assert pool.get_stats()["total_connections"] == 0
        deadline = time.monotonic() + 2
        while pool.connections_closed == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert pool.connections_closed == 1

        with pool.acquire() as other:
            assert other is not conn
        assert pool.connections_created == 2

    def test_discard_of_foreign_connection_ignored(self):
        pool = MockConnectionPool(min_size=1, max_size=1)

        pool.discard(Mock())
        with pool.acquire():
            pass

        assert pool.connections_closed == 0
        assert pool.get_stats()["idle_connections"] == 1

    def test_get_stats(self):
        pool = MockConnectionPool(min_size=1, max_size=4, pool_name="stats")

        stats = pool.get_stats()

        assert stats == {
            "pool_name": "stats",
            "total_connections": 1,
            "idle_connections": 1,
            "active_connections": 0,
            "min_size": 1,
            "max_size": 4,
            "closed": False,
        }


# ============================================================================
# ODBCConnectionPool
# ============================================================================


class TestODBCConnectionPool:
    """Test the source store pool."""

    def test_builds_connection_string(self):
        pool = ODBCConnectionPool(
            host="mysql.internal", port=3307, database="etu",
            user="roster", password="secret", driver="MySQL ODBC 8.0 ANSI Driver",
        )

        assert pool.connection_string == (
            "DRIVER={MySQL ODBC 8.0 ANSI Driver};SERVER=mysql.internal;PORT=3307;"
            "DATABASE=etu;UID=roster;PWD=secret;"
        )
        assert pool.pool_name == "source"

    def test_default_port(self):
        pool = ODBCConnectionPool(host="h", database="d", user="u", password="p")

        assert "PORT=3306;" in pool.connection_string

    def test_connection_string_used_as_is(self):
        conn_str = "Driver={MySQL};Server=db1;Database=etu;Uid=u;Pwd=p;"

        pool = ODBCConnectionPool(connection_string=conn_str)

        assert pool.connection_string == conn_str
        assert pool.host == "db1"
        assert pool.database == "etu"

    def test_missing_fields_rejected(self):
        with pytest.raises(ValueError, match="connection_string"):
            ODBCConnectionPool(host="h", database="d")

    @patch("roster_sync.utils.db_pool.odbc.pyodbc.connect")
    def test_connection_settings(self, mock_connect):
        mock_conn = MagicMock()
        mock_connect.return_value = mock_conn
        pool = ODBCConnectionPool(
            host="h", database="d", user="u", password="p",
            query_timeout=45, connect_timeout=7,
        )

        with pool.acquire() as conn:
            assert conn is mock_conn

        mock_connect.assert_called_once_with(pool.connection_string, timeout=7)
        assert mock_conn.autocommit is True
        assert mock_conn.timeout == 45

    @patch("roster_sync.utils.db_pool.odbc.pyodbc.connect")
    def test_health_check_runs_select_1(self, mock_connect):
        mock_conn = MagicMock()
        mock_connect.return_value = mock_conn
        pool = ODBCConnectionPool(host="h", database="d", user="u", password="p")

        assert pool._is_connection_healthy(mock_conn) is True
        mock_conn.cursor.return_value.execute.assert_called_once_with("SELECT 1")
        assert pool._is_connection_healthy(None) is False


# ============================================================================
# PostgresConnectionPool
# ============================================================================


class TestPostgresConnectionPool:
    """Test the target store pool."""

    @patch("roster_sync.utils.db_pool.postgres.psycopg2.connect")
    def test_connection_settings(self, mock_connect):
        mock_conn = MagicMock()
        mock_conn.closed = 0
        mock_connect.return_value = mock_conn
        pool = PostgresConnectionPool(
            host="pg.internal", port=5433, database="robert2",
            user="robert", password="secret2", statement_timeout=30,
        )

        with pool.acquire():
            pass

        mock_connect.assert_called_once_with(
            host="pg.internal",
            port=5433,
            dbname="robert2",
            user="robert",
            password="secret2",
            connect_timeout=10,
            options="-c statement_timeout=30000",
            application_name="roster-sync",
        )
        assert mock_conn.autocommit is True
        assert pool.pool_name == "target"

    def test_closed_connection_unhealthy(self):
        pool = PostgresConnectionPool(
            host="h", port=5432, database="d", user="u", password="p",
        )
        conn = Mock(closed=1)

        assert pool._is_connection_healthy(conn) is False
        pool._close_connection(conn)
        conn.close.assert_not_called()


# ============================================================================
# Process-wide pools
# ============================================================================


class TestGlobalPools:
    """Test initialize_pools / get_*_pool / close_pools."""

    def test_get_before_initialize_raises(self):
        with pytest.raises(RuntimeError, match="Source pool not initialized"):
            get_source_pool()
        with pytest.raises(RuntimeError, match="Target pool not initialized"):
            get_target_pool()

    def test_initialize_and_close(self):
        initialize_pools(
            source_config={"host": "h", "database": "d", "user": "u", "password": "p"},
            target_config={
                "host": "h", "port": 5432, "database": "d", "user": "u", "password": "p",
            },
            max_size=3,
        )

        source, target = get_source_pool(), get_target_pool()
        assert isinstance(source, ODBCConnectionPool)
        assert isinstance(target, PostgresConnectionPool)
        assert source.max_size == target.max_size == 3

        close_pools()

        with pytest.raises(RuntimeError):
            get_source_pool()
        with pytest.raises(PoolClosedError):
            with target.acquire():
                pass

    def test_initialize_only_target(self):
        initialize_pools(
            target_config={
                "host": "h", "port": 5432, "database": "d", "user": "u", "password": "p",
            },
        )

        assert get_target_pool().pool_name == "target"
        with pytest.raises(RuntimeError):
            get_source_pool()
