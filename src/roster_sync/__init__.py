"""
roster-sync

Periodically aligns the unlinked members of a PostgreSQL member table
with the currently active accounts of a source roster read over ODBC,
tagging every member it creates.
"""

__version__ = "1.0.0"

from .config import ConfigurationError, SyncSettings
from .sync import SyncEngine, SyncError, SyncResult

__all__ = [
    "ConfigurationError",
    "SyncEngine",
    "SyncError",
    "SyncResult",
    "SyncSettings",
    "__version__",
]
