"""
Settings resolution for the CLI.

Command-line options override Vault credentials, which override
environment variables (optionally loaded from a dotenv file).
"""

import argparse
import logging
from typing import Any

import requests

from roster_sync.config import ConfigurationError, SyncSettings
from roster_sync.utils.vault_client import VaultClient

logger = logging.getLogger(__name__)

SOURCE_OPTIONS = {
    "source_host": "host",
    "source_port": "port",
    "source_database": "database",
    "source_user": "user",
    "source_password": "password",
    "source_driver": "driver",
    "source_connection_string": "connection_string",
}

TARGET_OPTIONS = {
    "target_host": "host",
    "target_port": "port",
    "target_database": "database",
    "target_user": "user",
    "target_password": "password",
}


def _from_vault_secret(secret: dict[str, Any]) -> dict[str, Any]:
    """Map a Vault secret onto pool arguments (``username`` becomes ``user``)."""
    if "connection_string" in secret:
        return {"connection_string": secret["connection_string"]}

    config = {
        "host": secret.get("host"),
        "port": int(secret["port"]),
        "database": secret["database"],
        "user": secret["username"],
        "password": secret["password"],
    }
    if secret.get("driver"):
        config["driver"] = secret["driver"]
    return {key: value for key, value in config.items() if value is not None}


def get_credentials_from_vault() -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Fetch source and target credentials from Vault

    Raises:
        ConfigurationError: If Vault is not configured or a secret is unusable
    """
    try:
        vault_client = VaultClient()
        if not vault_client.health_check():
            raise ConfigurationError(
                f"Vault at {vault_client.vault_addr} is not ready (unreachable or sealed)"
            )
        source = _from_vault_secret(vault_client.get_store_credentials("source"))
        target = _from_vault_secret(vault_client.get_store_credentials("target"))
    except (ValueError, KeyError, requests.RequestException) as e:
        raise ConfigurationError(f"Failed to fetch credentials from Vault: {e}") from e

    logger.info("Successfully fetched credentials from Vault")
    return source, target


def _overrides(args: argparse.Namespace, options: dict[str, str]) -> dict[str, Any]:
    return {
        key: getattr(args, option)
        for option, key in options.items()
        if getattr(args, option, None) is not None
    }


def load_settings(args: argparse.Namespace) -> SyncSettings:
    """
    Resolve and validate settings for a command

    Args:
        args: Parsed command-line arguments

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If a setting is missing or invalid
    """
    settings = SyncSettings.from_env()

    if getattr(args, "use_vault", False):
        source, target = get_credentials_from_vault()
        if "connection_string" in source:
            settings.source = source
        else:
            settings = settings.with_credentials(source, {})
            settings.source.pop("connection_string", None)
        settings = settings.with_credentials({}, target)

    source_overrides = _overrides(args, SOURCE_OPTIONS)
    if "connection_string" in source_overrides:
        settings.source = {"connection_string": source_overrides["connection_string"]}
    elif source_overrides:
        settings = settings.with_credentials(source_overrides, {})
        settings.source.pop("connection_string", None)

    settings = settings.with_credentials({}, _overrides(args, TARGET_OPTIONS))

    if getattr(args, "tag_id", None) is not None:
        settings.tag_id = args.tag_id
    if getattr(args, "taggable_type", None):
        settings.subject_type = args.taggable_type
    if getattr(args, "interval_minutes", None) is not None:
        settings.interval_minutes = args.interval_minutes
    if getattr(args, "metrics_port", None) is not None:
        settings.metrics_port = args.metrics_port

    settings.validate()
    return settings
