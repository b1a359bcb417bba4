"""
Logging for roster-sync

Usage:
    import logging

    from roster_sync.utils.logging import setup_logging

    setup_logging(level="INFO", log_file="/var/log/roster-sync/sync.log")
    logger = logging.getLogger(__name__)
    logger.info("Pass finished", extra={"added": 3, "removed": 1})
"""

from .config import configure_from_env, setup_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "configure_from_env",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
