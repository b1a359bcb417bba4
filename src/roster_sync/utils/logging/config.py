"""
Logging setup for roster-sync.

One call at process start installs the console handler (colored or
JSON) and, optionally, a size-rotated log file.
"""

import logging
import logging.handlers
import os
import sys

from .formatters import ConsoleFormatter, JSONFormatter

TRUTHY = ("true", "1", "yes")


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
    json_format: bool = False,
    app_name: str = "roster-sync",
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure the root logger

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path of a rotating log file, or None to disable file logging
        console_output: Write records to stderr
        json_format: Use JSONFormatter instead of ConsoleFormatter
        app_name: Application name for JSON records
        max_bytes: Log file size that triggers rotation
        backup_count: Number of rotated files to keep
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    def build_formatter(colors: bool) -> logging.Formatter:
        if json_format:
            return JSONFormatter(app_name=app_name)
        return ConsoleFormatter(use_colors=colors)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(build_formatter(colors=True))
        root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(build_formatter(colors=False))
        root_logger.addHandler(file_handler)

    # psycopg2/pyodbc are quiet, but APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(max(numeric_level, logging.WARNING))

    root_logger.debug(
        f"Logging initialized: level={level}, file={log_file or 'none'}, "
        f"console={console_output}, json={json_format}"
    )


def configure_from_env(
    level: str | None = None,
    log_file: str | None = None,
    json_format: bool | None = None,
) -> None:
    """
    Configure logging from environment variables

    Arguments that are not None take precedence over the environment.

    Environment variables:
        LOG_LEVEL: Log level (default: INFO)
        LOG_FILE: Log file path (default: none)
        LOG_JSON: Use JSON format (default: false)
        LOG_CONSOLE: Enable console output (default: true)
    """
    setup_logging(
        level=level or os.getenv("LOG_LEVEL", "INFO"),
        log_file=log_file or os.getenv("LOG_FILE") or None,
        console_output=os.getenv("LOG_CONSOLE", "true").lower() in TRUTHY,
        json_format=(
            json_format if json_format is not None
            else os.getenv("LOG_JSON", "false").lower() in TRUTHY
        ),
    )
