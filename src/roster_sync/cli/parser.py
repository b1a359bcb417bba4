"""
Command-line argument parser configuration.

This module sets up the argument parser for the roster-sync CLI,
defining all commands and their options.
"""

import argparse


def _store_options() -> argparse.ArgumentParser:
    """Options shared by every command: credentials, tag and store connections."""
    common = argparse.ArgumentParser(add_help=False)

    common.add_argument(
        '--use-vault',
        action='store_true',
        help='Fetch store credentials from HashiCorp Vault'
    )
    common.add_argument('--tag-id', type=int, help='Tag attached to every synced member (TAG_ID)')
    common.add_argument(
        '--taggable-type',
        help='Association discriminator (TAGGABLE_TYPE)'
    )

    source = common.add_argument_group('source store (ODBC)')
    source.add_argument('--source-host', help='Source host')
    source.add_argument('--source-port', type=int, help='Source port')
    source.add_argument('--source-database', help='Source database name')
    source.add_argument('--source-user', help='Source username')
    source.add_argument('--source-password', help='Source password')
    source.add_argument('--source-driver', help='ODBC driver name')
    source.add_argument(
        '--source-connection-string',
        help='Full ODBC connection string (overrides the other source options)'
    )

    target = common.add_argument_group('target store (PostgreSQL)')
    target.add_argument('--target-host', help='PostgreSQL host')
    target.add_argument('--target-port', type=int, help='PostgreSQL port')
    target.add_argument('--target-database', help='PostgreSQL database name')
    target.add_argument('--target-user', help='PostgreSQL username')
    target.add_argument('--target-password', help='PostgreSQL password')

    return common


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='roster-sync',
        description="Keeps the target member list in step with the active source roster",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One pass, settings from the environment or .env
  roster-sync run

  # Check both stores answer
  roster-sync check

  # Sync every 15 minutes with metrics on :9091
  roster-sync schedule --interval-minutes 15 --metrics-port 9091

  # Credentials from Vault, JSON logs
  roster-sync --json-logs schedule --use-vault --tag-id 3
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: LOG_LEVEL or INFO)'
    )
    parser.add_argument('--log-file', help='Rotating log file (default: LOG_FILE)')
    parser.add_argument(
        '--json-logs',
        action='store_const',
        const=True,
        help='Emit JSON log records (default: LOG_JSON)'
    )
    parser.add_argument(
        '--env-file',
        default='.env',
        help='Dotenv file loaded before reading settings (default: .env)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    common = _store_options()

    # ========== Run command ==========
    subparsers.add_parser('run', parents=[common], help='Run one sync pass')

    # ========== Schedule command ==========
    schedule_parser = subparsers.add_parser(
        'schedule', parents=[common], help='Sync now, then on a fixed interval'
    )
    schedule_parser.add_argument(
        '--interval-minutes',
        type=int,
        help='Minutes between passes (default: SYNC_GAP_MINUTES or 15)'
    )
    schedule_parser.add_argument(
        '--metrics-port',
        type=int,
        help='Serve Prometheus metrics on this port (default: METRICS_PORT)'
    )

    # ========== Check command ==========
    subparsers.add_parser('check', parents=[common], help='Check both stores are reachable')

    return parser
