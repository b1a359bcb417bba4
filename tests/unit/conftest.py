"""
In-memory stand-in for the target store.

FakeTargetStore understands the handful of statements the target reader
and the applier issue against ``persons`` and ``taggables``, so sync
scenarios can be run end to end without PostgreSQL.
"""

import copy
from dataclasses import dataclass

import pytest

from roster_sync.config import DEFAULT_SUBJECT_TYPE


@dataclass
class PersonRow:
    id: int
    first_name: str | None
    last_name: str | None
    nickname: str | None
    email: str | None
    user_id: int | None = None


class FakeTargetStore:
    """Rows of ``persons`` and ``taggables`` plus statement bookkeeping."""

    def __init__(self):
        self.persons: list[PersonRow] = []
        self.taggables: list[tuple[int, str, int]] = []
        self.next_id = 1
        self.statements: list[str] = []
        self.commits = 0
        self.rollbacks = 0

    def add_person(self, nickname, first_name="First", last_name="Last", email=None, user_id=None):
        row = PersonRow(self.next_id, first_name, last_name, nickname, email, user_id)
        self.persons.append(row)
        self.next_id += 1
        return row

    def tag(self, person_id, tag_id=3, subject_type=DEFAULT_SUBJECT_TYPE):
        self.taggables.append((tag_id, subject_type, person_id))

    def nicknames(self) -> set:
        return {p.nickname for p in self.persons}

    def tags_for(self, person_id) -> list:
        return [t for t in self.taggables if t[2] == person_id]

    def snapshot(self):
        return copy.deepcopy((self.persons, self.taggables, self.next_id))

    def restore(self, state):
        self.persons, self.taggables, self.next_id = state

    def connection(self) -> "FakeConnection":
        return FakeConnection(self)


class FakeCursor:
    def __init__(self, store: FakeTargetStore):
        self.store = store
        self._rows: list[tuple] = []
        self.rowcount = -1
        self.fail_on: str | None = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def close(self):
        pass

    def fetchall(self):
        return list(self._rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def execute(self, sql, params=None):
        store = self.store
        store.statements.append(sql)
        unlinked = [p for p in store.persons if p.user_id is None]

        if sql.startswith('SELECT "id", "nickname", "first_name"'):
            self._rows = [
                (p.id, p.nickname, p.first_name, p.last_name, p.email)
                for p in sorted(unlinked, key=lambda p: p.id)
            ]
        elif sql.startswith('SELECT "id", "nickname" FROM'):
            wanted = set(params[0])
            self._rows = [(p.id, p.nickname) for p in unlinked if p.nickname in wanted]
        elif sql.startswith('DELETE FROM "taggables"'):
            subject_type, ids = params
            before = len(store.taggables)
            store.taggables = [
                t for t in store.taggables
                if not (t[1] == subject_type and t[2] in ids)
            ]
            self.rowcount = before - len(store.taggables)
        elif sql.startswith('DELETE FROM "persons"'):
            wanted = set(params[0])
            before = len(store.persons)
            store.persons = [
                p for p in store.persons
                if not (p.user_id is None and p.nickname in wanted)
            ]
            self.rowcount = before - len(store.persons)
        elif sql == "SELECT 1":
            self._rows = [(1,)]
        else:
            raise AssertionError(f"Unexpected statement: {sql}")

    def insert_rows(self, sql, rows):
        store = self.store
        store.statements.append(sql)
        if sql.startswith('INSERT INTO "persons"'):
            for first_name, last_name, login, email in rows:
                store.add_person(login, first_name, last_name, email)
        elif sql.startswith('INSERT INTO "taggables"'):
            store.taggables.extend(rows)
        else:
            raise AssertionError(f"Unexpected insert: {sql}")
        self.rowcount = len(rows)


class FakeConnection:
    """Connection over a FakeTargetStore; turning autocommit off opens a transaction."""

    def __init__(self, store: FakeTargetStore):
        self.store = store
        self.closed = 0
        self._autocommit = True
        self._snapshot = None

    @property
    def autocommit(self):
        return self._autocommit

    @autocommit.setter
    def autocommit(self, value):
        if not value:
            self._snapshot = self.store.snapshot()
        self._autocommit = value

    def cursor(self):
        return FakeCursor(self.store)

    def commit(self):
        self.store.commits += 1
        self._snapshot = None

    def rollback(self):
        self.store.rollbacks += 1
        if self._snapshot is not None:
            self.store.restore(self._snapshot)
            self._snapshot = None


def fake_execute_values(cursor, sql, rows, template=None, page_size=100):
    cursor.insert_rows(sql, rows)


@pytest.fixture
def target_store(monkeypatch) -> FakeTargetStore:
    """A FakeTargetStore with the applier's batch insert routed into it."""
    monkeypatch.setattr("roster_sync.sync.applier.execute_values", fake_execute_values)
    return FakeTargetStore()
