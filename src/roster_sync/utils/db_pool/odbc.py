"""ODBC connection pool for the source store."""

from typing import Any

import pyodbc
from opentelemetry import trace

from roster_sync.utils.tracing import trace_operation

from .base import BaseConnectionPool

DEFAULT_ODBC_DRIVER = "MySQL ODBC 8.0 Unicode Driver"


class ODBCConnectionPool(BaseConnectionPool):
    """
    Pool of read-only ODBC connections

    The source roster lives in whatever database the configured ODBC
    driver reaches (MySQL by default). Either pass a full
    ``connection_string`` or the individual connection fields.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        driver: str = DEFAULT_ODBC_DRIVER,
        connection_string: str | None = None,
        query_timeout: int = 60,
        connect_timeout: int = 10,
        **kwargs: Any,
    ):
        """
        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Username
            password: Password
            driver: ODBC driver name as registered in odbcinst.ini
            connection_string: Complete ODBC connection string, used as-is
            query_timeout: Per-statement limit in seconds (0 disables)
            connect_timeout: Login limit in seconds
            **kwargs: Passed to BaseConnectionPool
        """
        if connection_string:
            self.connection_string = connection_string
            self.host = self._extract_from_conn_str(connection_string, "SERVER")
            self.database = self._extract_from_conn_str(connection_string, "DATABASE")
        else:
            if not all([host, database, user, password]):
                raise ValueError(
                    "Either connection_string or all of (host, database, user, password) "
                    "must be provided"
                )
            self.host = host
            self.database = database
            self.connection_string = (
                f"DRIVER={{{driver}}};"
                f"SERVER={host};"
                f"PORT={port or 3306};"
                f"DATABASE={database};"
                f"UID={user};"
                f"PWD={password};"
            )

        self.query_timeout = query_timeout
        self.connect_timeout = connect_timeout

        kwargs.setdefault("pool_name", "source")
        super().__init__(**kwargs)

    @staticmethod
    def _extract_from_conn_str(conn_str: str, key: str) -> str:
        for part in conn_str.split(";"):
            name, sep, value = part.partition("=")
            if sep and name.strip().upper() == key.upper():
                return value.strip()
        return "unknown"

    def _create_connection(self) -> pyodbc.Connection:
        with trace_operation(
            "odbc_connect",
            kind=trace.SpanKind.CLIENT,
            db_host=self.host,
            db_name=self.database,
        ):
            conn = pyodbc.connect(self.connection_string, timeout=self.connect_timeout)
            conn.autocommit = True
            # applies to every statement executed on this connection
            conn.timeout = self.query_timeout
            return conn

    def _is_connection_healthy(self, conn: pyodbc.Connection) -> bool:
        if conn is None:
            return False

        try:
            cursor = conn.cursor()
            try:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            finally:
                cursor.close()
            return True
        except pyodbc.Error:
            return False

    def _close_connection(self, conn: pyodbc.Connection) -> None:
        if conn is not None:
            conn.close()

    def _get_db_type(self) -> str:
        return "odbc"
