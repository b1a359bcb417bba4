"""
Reconciliation engine

Components:
- readers: active source members and unlinked target members
- delta: add/remove sets keyed on login == nickname
- applier: writes the delta and the member associations
- engine: one pass over the above
"""

from .applier import Applier
from .delta import compute_delta
from .engine import SyncEngine
from .errors import (
    ApplyFailed,
    ApplyInconsistency,
    SourceUnavailable,
    SyncError,
    TargetUnavailable,
)
from .models import (
    ApplyResult,
    Association,
    SourceMember,
    SyncDelta,
    SyncResult,
    TargetMember,
)
from .readers import SourceReader, TargetReader

__all__ = [
    "Applier",
    "ApplyFailed",
    "ApplyInconsistency",
    "ApplyResult",
    "Association",
    "SourceMember",
    "SourceReader",
    "SourceUnavailable",
    "SyncDelta",
    "SyncEngine",
    "SyncError",
    "SyncResult",
    "TargetMember",
    "TargetReader",
    "TargetUnavailable",
    "compute_delta",
]
