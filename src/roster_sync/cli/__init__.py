"""
Command-line interface for roster-sync.

Available commands:
- run: Execute one sync pass
- schedule: Sync now, then every SYNC_GAP_MINUTES
- check: Verify both stores are reachable

Exit status: 0 on success, 1 on a failed pass or unreachable store,
2 on invalid configuration.
"""

import logging
import sys

from dotenv import load_dotenv

from roster_sync.config import ConfigurationError
from roster_sync.utils.db_pool import close_pools
from roster_sync.utils.logging import configure_from_env
from roster_sync.utils.tracing import initialize_tracing, shutdown_tracing

from .commands import cmd_check, cmd_run, cmd_schedule
from .credentials import get_credentials_from_vault, load_settings
from .parser import create_parser

logger = logging.getLogger(__name__)

COMMANDS = {
    'run': cmd_run,
    'schedule': cmd_schedule,
    'check': cmd_check,
}

EXIT_CONFIG_ERROR = 2


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the roster-sync CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    # existing environment variables win over the dotenv file
    load_dotenv(args.env_file, override=False)

    configure_from_env(
        level=args.log_level,
        log_file=args.log_file,
        json_format=args.json_logs,
    )

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    initialize_tracing()
    try:
        exit_code = command(args)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        exit_code = EXIT_CONFIG_ERROR
    finally:
        close_pools()
        shutdown_tracing()

    sys.exit(exit_code)


__all__ = [
    'main',
    'create_parser',
    'load_settings',
    'get_credentials_from_vault',
    'cmd_run',
    'cmd_schedule',
    'cmd_check',
]


if __name__ == '__main__':
    main()
