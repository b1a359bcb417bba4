"""
Readers for the two stores.

Both readers are read-only and raise on any store error; a failed read
aborts the pass.
"""

import logging
from typing import Any

import psycopg2
import pyodbc
from opentelemetry import trace

from roster_sync.config import ActivityPredicate, SourceSchema, TargetSchema
from roster_sync.utils.logging import ContextLogger
from roster_sync.utils.sql_safety import quote_identifier, quote_schema_table
from roster_sync.utils.tracing import trace_operation

from .errors import SourceUnavailable, TargetUnavailable
from .models import SourceMember, TargetMember

logger = logging.getLogger(__name__)


class SourceReader:
    """Fetches the currently active members from the source roster over ODBC."""

    def __init__(
        self,
        connection: Any,
        schema: SourceSchema | None = None,
        activity: ActivityPredicate | None = None,
    ):
        self.connection = connection
        self.schema = schema or SourceSchema()
        self.activity = activity or ActivityPredicate()
        self.statements = ContextLogger(__name__, store="source")
        self._cursor = None

    def build_query(self) -> str:
        style = self.schema.quote_style
        columns = ", ".join(
            quote_identifier(name, style)
            for name in (
                self.schema.first_name_column,
                self.schema.last_name_column,
                self.schema.login_column,
                self.schema.email_column,
            )
        )
        return (
            f"SELECT {columns} "
            f"FROM {quote_schema_table(self.schema.table, style)} "
            f"WHERE {quote_identifier(self.activity.column, style)} {self.activity.operator} ?"
        )

    def fetch(self) -> list[SourceMember]:
        """
        Returns:
            Active members; rows with an empty or NULL login are skipped

        Raises:
            SourceUnavailable: If the query fails
        """
        query = self.build_query()
        reference_time = self.activity.reference_time()

        with trace_operation("roster_sync.read_source", kind=trace.SpanKind.CLIENT) as span:
            self.statements.debug(query, reference_time=reference_time.isoformat())
            try:
                cursor = self._cursor = self.connection.cursor()
                try:
                    cursor.execute(query, reference_time)
                    rows = cursor.fetchall()
                finally:
                    self._cursor = None
                    cursor.close()
            except pyodbc.Error as e:
                raise SourceUnavailable(f"Source roster query failed: {e}") from e

            members = []
            skipped = 0
            for first_name, last_name, login, email in rows:
                if login is None or login == "":
                    skipped += 1
                    continue
                members.append(SourceMember(
                    first_name=first_name,
                    last_name=last_name,
                    login=login,
                    email=email,
                ))

            span.set_attribute("rows", len(members))

        if skipped:
            self.statements.warning(
                f"Skipped {skipped} source row(s) without a login", skipped=skipped
            )
        logger.debug(f"Fetched {len(members)} active member(s) from source")
        return members

    def cancel(self) -> None:
        """Ask the driver to stop the query in flight; callable from another thread."""
        cursor = self._cursor
        if cursor is not None:
            cursor.cancel()


class TargetReader:
    """Fetches the target members that are not linked to an external account."""

    def __init__(self, connection: Any, schema: TargetSchema | None = None):
        self.connection = connection
        self.schema = schema or TargetSchema()
        self.statements = ContextLogger(__name__, store="target")

    def build_query(self) -> str:
        s = self.schema
        columns = ", ".join(
            quote_identifier(name, "postgresql")
            for name in (
                s.id_column,
                s.nickname_column,
                s.first_name_column,
                s.last_name_column,
                s.email_column,
            )
        )
        return (
            f"SELECT {columns} "
            f"FROM {quote_schema_table(s.member_table, 'postgresql')} "
            f"WHERE {quote_identifier(s.management_link_column, 'postgresql')} IS NULL "
            f"ORDER BY {quote_identifier(s.id_column, 'postgresql')}"
        )

    def fetch(self) -> list[TargetMember]:
        """
        Returns:
            Unlinked members; rows with a NULL nickname are skipped

        Raises:
            TargetUnavailable: If the query fails
        """
        query = self.build_query()

        with trace_operation("roster_sync.read_target", kind=trace.SpanKind.CLIENT) as span:
            self.statements.debug(query)
            try:
                with self.connection.cursor() as cursor:
                    cursor.execute(query)
                    rows = cursor.fetchall()
            except psycopg2.Error as e:
                raise TargetUnavailable(f"Target member query failed: {e}") from e

            members = [
                TargetMember(
                    id=member_id,
                    nickname=nickname,
                    first_name=first_name,
                    last_name=last_name,
                    email=email,
                )
                for member_id, nickname, first_name, last_name, email in rows
                if nickname is not None
            ]
            span.set_attribute("rows", len(members))

        if len(members) < len(rows):
            skipped = len(rows) - len(members)
            self.statements.warning(
                f"Skipped {skipped} target row(s) without a nickname", skipped=skipped
            )
        logger.debug(f"Fetched {len(members)} synced member(s) from target")
        return members

    def cancel(self) -> None:
        """Send a cancel request for the query in flight; callable from another thread."""
        self.connection.cancel()
