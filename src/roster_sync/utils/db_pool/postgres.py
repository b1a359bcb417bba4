"""PostgreSQL connection pool for the target store."""

from typing import Any

import psycopg2
import psycopg2.extensions
from opentelemetry import trace

from roster_sync.utils.tracing import trace_operation

from .base import BaseConnectionPool


class PostgresConnectionPool(BaseConnectionPool):
    """
    Pool of autocommit PostgreSQL connections

    Every connection carries a server-side ``statement_timeout`` so a
    hung statement fails the pass instead of stalling the scheduler.
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        statement_timeout: int = 60,
        connect_timeout: int = 10,
        **kwargs: Any,
    ):
        """
        Args:
            host: PostgreSQL host
            port: PostgreSQL port
            database: Database name
            user: Username
            password: Password
            statement_timeout: Per-statement limit in seconds (0 disables)
            connect_timeout: Connection establishment limit in seconds
            **kwargs: Passed to BaseConnectionPool
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.statement_timeout = statement_timeout
        self.connect_timeout = connect_timeout

        kwargs.setdefault("pool_name", "target")
        super().__init__(**kwargs)

    def _create_connection(self) -> psycopg2.extensions.connection:
        with trace_operation(
            "postgres_connect",
            kind=trace.SpanKind.CLIENT,
            db_host=self.host,
            db_name=self.database,
        ):
            conn = psycopg2.connect(
                host=self.host,
                port=self.port,
                dbname=self.database,
                user=self.user,
                password=self.password,
                connect_timeout=self.connect_timeout,
                options=f"-c statement_timeout={int(self.statement_timeout * 1000)}",
                application_name="roster-sync",
            )
            # writers open explicit transactions; reads and pings stay autocommit
            conn.autocommit = True
            return conn

    def _is_connection_healthy(self, conn: psycopg2.extensions.connection) -> bool:
        if conn is None or conn.closed:
            return False

        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            return True
        except (psycopg2.Error, psycopg2.Warning):
            return False

    def _close_connection(self, conn: psycopg2.extensions.connection) -> None:
        if conn is not None and not conn.closed:
            conn.close()

    def _get_db_type(self) -> str:
        return "postgresql"
