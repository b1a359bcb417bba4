"""
Logger wrappers.

Provides ContextLogger, which stamps a fixed set of key-value pairs
(for example ``store="target"``) on every record it emits.
"""

import logging


class ContextLogger:
    """
    Logger wrapper that merges a bound context into every record

    Usage:
        statements = ContextLogger("roster_sync.sync.applier", store="target")
        statements.debug("INSERT INTO persons ...", rows=3)
        # record carries both store and rows
    """

    def __init__(self, name: str, **context):
        self.logger = logging.getLogger(name)
        self.context = context

    def _log(self, level: int, msg: str, *args, exc_info=None, **kwargs) -> None:
        extra = {**self.context, **kwargs}
        self.logger.log(level, msg, *args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

