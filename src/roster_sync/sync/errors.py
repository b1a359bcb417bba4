"""
Errors raised by a sync pass.

Each one aborts the current pass; the scheduler logs it and waits for
the next tick, which recomputes the delta from scratch.
"""


class SyncError(Exception):
    """Base class for sync pass failures."""


class SourceUnavailable(SyncError):
    """The source store could not be reached or the roster query failed."""


class TargetUnavailable(SyncError):
    """The target store could not be reached or the member query failed."""


class ApplyFailed(SyncError):
    """An insert or delete against the target store failed."""


class ApplyInconsistency(SyncError):
    """
    Re-resolving inserted members did not map one-to-one onto the
    requested logins, so no association could be written safely.
    """

    def __init__(self, message: str, expected: set[str], resolved: list[str]):
        super().__init__(message)
        self.expected = expected
        self.resolved = resolved
