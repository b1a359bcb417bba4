"""
Delta calculation between the source roster and the target members.

Members are matched on ``SourceMember.login == TargetMember.nickname``
with exact string equality. Duplicate keys on either side count once
(first occurrence wins) and input order is preserved, so the result is
deterministic for a given input.
"""

from collections.abc import Iterable

from .models import SourceMember, SyncDelta, TargetMember


def index_by_key(records: Iterable, key: str) -> dict:
    """Map each distinct ``record.<key>`` to the first record carrying it."""
    index: dict = {}
    for record in records:
        index.setdefault(getattr(record, key), record)
    return index


def compute_delta(
    source_members: Iterable[SourceMember],
    target_members: Iterable[TargetMember],
) -> SyncDelta:
    """
    Compute which members to add to and remove from the target

    Args:
        source_members: Active members from the source roster
        target_members: Unlinked members currently in the target store

    Returns:
        SyncDelta whose ``to_add`` holds source members with no matching
        nickname and whose ``to_remove`` holds target members with no
        matching login
    """
    source_by_login = index_by_key(source_members, "login")
    target_by_nickname = index_by_key(target_members, "nickname")

    to_add = tuple(
        member for login, member in source_by_login.items()
        if login not in target_by_nickname
    )
    to_remove = tuple(
        member for nickname, member in target_by_nickname.items()
        if nickname not in source_by_login
    )

    return SyncDelta(to_add=to_add, to_remove=to_remove)
