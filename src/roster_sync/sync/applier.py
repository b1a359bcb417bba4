"""
Writes a SyncDelta to the target store.

Add path: insert members, re-resolve their generated ids by nickname,
insert one association per id. Remove path: resolve ids by nickname,
delete their associations, delete the members. Each path runs in its
own transaction unless ``transactional`` is off, and each is skipped
outright when it has nothing to do.
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
from opentelemetry import trace
from psycopg2.extras import execute_values

from roster_sync.config import TargetSchema
from roster_sync.utils.logging import ContextLogger
from roster_sync.utils.sql_safety import quote_identifier, quote_schema_table
from roster_sync.utils.tracing import trace_operation

from .delta import index_by_key
from .errors import ApplyFailed, ApplyInconsistency
from .models import ApplyResult, Association, SourceMember, SyncDelta, TargetMember

logger = logging.getLogger(__name__)


def _q(name: str) -> str:
    return quote_identifier(name, "postgresql")


class Applier:
    """Applies add and remove sets to the target store over one connection."""

    def __init__(
        self,
        connection: Any,
        tag_id: int,
        subject_type: str,
        schema: TargetSchema | None = None,
        transactional: bool = True,
        page_size: int = 500,
    ):
        """
        Args:
            connection: psycopg2 connection, normally in autocommit mode
            tag_id: Tag written on every association
            subject_type: Discriminator identifying member associations
            schema: Table and column names
            transactional: Wrap each path in a transaction
            page_size: Rows per multi-row INSERT statement
        """
        self.connection = connection
        self.tag_id = tag_id
        self.subject_type = subject_type
        self.schema = schema or TargetSchema()
        self.transactional = transactional
        self.page_size = page_size
        self.statements = ContextLogger(__name__, store="target")

        s = self.schema
        self._members = quote_schema_table(s.member_table, "postgresql")
        self._associations = quote_schema_table(s.association_table, "postgresql")
        self._unlinked = f"{_q(s.management_link_column)} IS NULL"

    def apply(self, delta: SyncDelta) -> ApplyResult:
        """
        Raises:
            ApplyFailed: If a statement fails
            ApplyInconsistency: If inserted members cannot be resolved one-to-one
        """
        added = self.add_members(delta.to_add)
        removed = self.remove_members(delta.to_remove)
        return ApplyResult(added=len(added), removed=removed)

    @contextmanager
    def _unit_of_work(self, path: str) -> Iterator[None]:
        if not self.transactional:
            yield
            return

        conn = self.connection
        try:
            previous_autocommit = conn.autocommit
            conn.autocommit = False
        except psycopg2.Error as e:
            raise ApplyFailed(f"Could not begin {path} transaction: {e}") from e

        try:
            yield
            try:
                conn.commit()
            except psycopg2.Error as e:
                raise ApplyFailed(f"Commit of {path} path failed: {e}") from e
        except BaseException:
            try:
                conn.rollback()
                logger.warning(f"Rolled back {path} path")
            except psycopg2.Error as rollback_error:
                logger.error(f"Rollback of {path} path failed: {rollback_error}")
            raise
        finally:
            if not conn.closed:
                try:
                    conn.autocommit = previous_autocommit
                except psycopg2.Error as e:
                    logger.error(f"Could not restore autocommit after {path} path: {e}")

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        try:
            cursor = self.connection.cursor()
        except psycopg2.Error as e:
            raise ApplyFailed(f"Could not open a cursor: {e}") from e
        with cursor as entered:
            yield entered

    def _execute(self, cursor: Any, sql: str, params: Sequence[Any]) -> None:
        self.statements.debug(sql)
        try:
            cursor.execute(sql, params)
        except psycopg2.Error as e:
            raise ApplyFailed(f"Statement failed: {e}") from e

    def _execute_values(self, cursor: Any, sql: str, rows: list[tuple], template: str) -> None:
        self.statements.debug(sql, rows=len(rows))
        try:
            execute_values(cursor, sql, rows, template=template, page_size=self.page_size)
        except psycopg2.Error as e:
            raise ApplyFailed(f"Batch insert failed: {e}") from e

    def _resolve_ids(self, cursor: Any, nicknames: list[str]) -> list[tuple[int, str]]:
        s = self.schema
        self._execute(
            cursor,
            f"SELECT {_q(s.id_column)}, {_q(s.nickname_column)} FROM {self._members} "
            f"WHERE {_q(s.nickname_column)} = ANY(%s) AND {self._unlinked}",
            (nicknames,),
        )
        try:
            rows = cursor.fetchall()
        except psycopg2.Error as e:
            raise ApplyFailed(f"Reading resolved ids failed: {e}") from e
        return [(row[0], row[1]) for row in rows]

    def add_members(self, members: Sequence[SourceMember]) -> list[int]:
        """
        Insert members and their associations

        Returns:
            Ids of the created members
        """
        if not members:
            return []

        unique_members = list(index_by_key(members, "login").values())
        logins = [member.login for member in unique_members]
        s = self.schema

        with trace_operation(
            "roster_sync.apply_add", kind=trace.SpanKind.CLIENT, rows=len(unique_members)
        ), self._unit_of_work("add"):
            with self._cursor() as cursor:
                member_columns = [
                    s.first_name_column,
                    s.last_name_column,
                    s.nickname_column,
                    s.email_column,
                    s.management_link_column,
                    *s.null_profile_columns,
                    s.created_at_column,
                    s.updated_at_column,
                ]
                null_slots = ", ".join(["NULL"] * (1 + len(s.null_profile_columns)))
                self._execute_values(
                    cursor,
                    f"INSERT INTO {self._members} "
                    f"({', '.join(_q(c) for c in member_columns)}) VALUES %s",
                    [(m.first_name, m.last_name, m.login, m.email) for m in unique_members],
                    template=f"(%s, %s, %s, %s, {null_slots}, now(), now())",
                )

                resolved = self._resolve_ids(cursor, logins)
                resolved_nicknames = [nickname for _, nickname in resolved]
                if len(resolved) != len(logins) or set(resolved_nicknames) != set(logins):
                    raise ApplyInconsistency(
                        f"Inserted {len(logins)} member(s) but resolved {len(resolved)} "
                        f"row(s) by nickname; refusing to write associations",
                        expected=set(logins),
                        resolved=resolved_nicknames,
                    )

                member_ids = [member_id for member_id, _ in resolved]
                associations = [
                    Association(tag_id=self.tag_id, subject_type=self.subject_type, subject_id=member_id)
                    for member_id in member_ids
                ]
                self._execute_values(
                    cursor,
                    f"INSERT INTO {self._associations} "
                    f"({_q(s.tag_column)}, {_q(s.subject_type_column)}, {_q(s.subject_id_column)}) "
                    f"VALUES %s",
                    [(a.tag_id, a.subject_type, a.subject_id) for a in associations],
                    template="(%s, %s, %s)",
                )

        return member_ids

    def remove_members(self, members: Sequence[TargetMember]) -> int:
        """
        Delete members and their associations

        Returns:
            Number of member rows deleted
        """
        if not members:
            return 0

        nicknames = list(index_by_key(members, "nickname"))
        s = self.schema

        with trace_operation(
            "roster_sync.apply_remove", kind=trace.SpanKind.CLIENT, rows=len(nicknames)
        ), self._unit_of_work("remove"):
            with self._cursor() as cursor:
                member_ids = [member_id for member_id, _ in self._resolve_ids(cursor, nicknames)]
                if not member_ids:
                    logger.info("Members to remove are already gone")
                    return 0

                self._execute(
                    cursor,
                    f"DELETE FROM {self._associations} "
                    f"WHERE {_q(s.subject_type_column)} = %s AND {_q(s.subject_id_column)} = ANY(%s)",
                    (self.subject_type, member_ids),
                )
                self._execute(
                    cursor,
                    f"DELETE FROM {self._members} "
                    f"WHERE {_q(s.nickname_column)} = ANY(%s) AND {self._unlinked}",
                    (nicknames,),
                )
                return cursor.rowcount
