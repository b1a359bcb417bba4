"""
Sync scheduler module

Runs sync passes on a fixed interval using APScheduler.
"""

from .jobs import build_engine, ping_store, run_sync_pass, verify_connectivity
from .scheduler import SchedulerState, SyncScheduler

__all__ = [
    'SchedulerState',
    'SyncScheduler',
    'build_engine',
    'ping_store',
    'run_sync_pass',
    'verify_connectivity',
]
