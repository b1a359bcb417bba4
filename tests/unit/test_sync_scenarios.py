"""
End-to-end sync passes against the in-memory target store

Tests verify:
- New active member is created and tagged
- Member no longer active is deleted with its tags
- Unchanged member causes no writes
- A second pass over the same state writes nothing
- Linked members are never touched
"""

from unittest.mock import Mock

from roster_sync.config import DEFAULT_SUBJECT_TYPE
from roster_sync.sync.applier import Applier
from roster_sync.sync.engine import SyncEngine
from roster_sync.sync.models import SourceMember
from roster_sync.sync.readers import TargetReader

TAG_ID = 3


def run_pass(target_store, active):
    source_reader = Mock()
    source_reader.fetch.return_value = list(active)
    conn = target_store.connection()
    engine = SyncEngine(
        source_reader,
        TargetReader(conn),
        Applier(conn, tag_id=TAG_ID, subject_type=DEFAULT_SUBJECT_TYPE),
    )
    return engine.run()


def writes(target_store):
    return [s for s in target_store.statements if not s.startswith("SELECT")]


class TestSyncScenarios:
    """Scenarios from the operations runbook"""

    def test_new_active_member_is_added(self, target_store):
        result = run_pass(target_store, [SourceMember("Alice", "A", "alice", "a@x")])

        assert result.added == 1
        alice = target_store.persons[0]
        assert (alice.nickname, alice.user_id) == ("alice", None)
        assert target_store.tags_for(alice.id) == [(TAG_ID, DEFAULT_SUBJECT_TYPE, alice.id)]

    def test_inactive_member_is_removed(self, target_store):
        bob = target_store.add_person("bob")
        target_store.tag(bob.id, tag_id=TAG_ID)

        result = run_pass(target_store, [])

        assert result.removed == 1
        assert target_store.persons == []
        assert target_store.tags_for(bob.id) == []

    def test_unchanged_member_causes_no_writes(self, target_store):
        carol = target_store.add_person("carol")
        target_store.tag(carol.id)

        result = run_pass(target_store, [SourceMember("Carol", "C", "carol", None)])

        assert (result.added, result.removed) == (0, 0)
        assert writes(target_store) == []
        assert target_store.commits == 0

    def test_second_pass_is_idempotent(self, target_store):
        target_store.add_person("bob")
        active = [SourceMember("Alice", "A", "alice", None), SourceMember("Dan", "D", "dan", None)]

        first = run_pass(target_store, active)
        target_store.statements.clear()
        second = run_pass(target_store, active)

        assert (first.added, first.removed) == (2, 1)
        assert (second.added, second.removed) == (0, 0)
        assert writes(target_store) == []

    def test_every_added_member_has_exactly_one_tag(self, target_store):
        active = [SourceMember(None, None, f"user{i}", None) for i in range(5)]

        run_pass(target_store, active)

        for person in target_store.persons:
            assert target_store.tags_for(person.id) == [(TAG_ID, DEFAULT_SUBJECT_TYPE, person.id)]

    def test_linked_members_are_never_touched(self, target_store):
        linked = target_store.add_person("eve", user_id=9)
        target_store.tag(linked.id)

        result = run_pass(target_store, [])

        assert result.target_count == 0
        assert target_store.persons == [linked]
        assert target_store.tags_for(linked.id) != []

    def test_linked_namesake_of_active_login(self, target_store):
        """An active login whose only namesake is linked is still created"""
        linked = target_store.add_person("frank", user_id=1)

        result = run_pass(target_store, [SourceMember("Frank", "F", "frank", None)])

        assert result.added == 1
        assert len([p for p in target_store.persons if p.nickname == "frank"]) == 2
        assert target_store.tags_for(linked.id) == []
