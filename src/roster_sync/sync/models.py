"""
Records exchanged between the sync components.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True)
class SourceMember:
    """An active member as reported by the source roster."""

    first_name: str | None
    last_name: str | None
    login: str
    email: str | None


@dataclass(frozen=True)
class TargetMember:
    """A member row in the target store that is under sync control."""

    id: int
    nickname: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    management_link_id: int | None = None


@dataclass(frozen=True)
class Association:
    """Tag row linking a target member to the configured classification."""

    tag_id: int
    subject_type: str
    subject_id: int


@dataclass(frozen=True)
class SyncDelta:
    """Members to create and members to delete in one pass."""

    to_add: tuple[SourceMember, ...] = ()
    to_remove: tuple[TargetMember, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


@dataclass(frozen=True)
class ApplyResult:
    added: int = 0
    removed: int = 0


@dataclass
class SyncResult:
    """Outcome of one completed sync pass."""

    started_at: datetime
    finished_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    source_count: int = 0
    target_count: int = 0
    added: int = 0
    removed: int = 0

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_seconds": round(self.duration, 3),
            "source_count": self.source_count,
            "target_count": self.target_count,
            "added": self.added,
            "removed": self.removed,
        }
