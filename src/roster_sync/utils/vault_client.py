"""
HashiCorp Vault client for store credentials

Reads credentials for the source and target stores from the KV v2
secrets engine at ``secret/database/source`` and ``secret/database/target``.
"""

import logging
import os
import re
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

STORE_NAMES = ("source", "target")

REQUIRED_FIELDS = {
    "source": ["database", "username", "password"],
    "target": ["host", "database", "username", "password"],
}

DEFAULT_PORTS = {"source": 3306, "target": 5432}


class VaultClient:
    """Minimal KV v2 client over the Vault HTTP API."""

    def __init__(
        self,
        vault_addr: Optional[str] = None,
        vault_token: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: float = 10.0,
    ):
        """
        Args:
            vault_addr: Vault server address (default: VAULT_ADDR)
            vault_token: Vault token (default: VAULT_TOKEN)
            namespace: Vault Enterprise namespace
            timeout: HTTP timeout in seconds

        Raises:
            ValueError: If the address or token is missing
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.namespace = namespace
        self.timeout = timeout

        if not self.vault_addr:
            raise ValueError(
                "Vault address not provided. Set VAULT_ADDR environment variable "
                "or pass vault_addr parameter."
            )

        if not self.vault_token:
            raise ValueError(
                "Vault token not provided. Set VAULT_TOKEN environment variable "
                "or pass vault_token parameter."
            )

        self.vault_addr = self.vault_addr.rstrip("/")

        self.headers = {
            "X-Vault-Token": self.vault_token,
            "Content-Type": "application/json",
        }
        if self.namespace:
            self.headers["X-Vault-Namespace"] = self.namespace

        logger.info(f"Initialized Vault client for {self.vault_addr}")

    def get_secret(self, secret_path: str) -> Dict[str, Any]:
        """
        Fetch a KV v2 secret

        Args:
            secret_path: Path such as "secret/database/target"; "/data/" is
                inserted after the mount point when missing

        Returns:
            The secret's key-value data

        Raises:
            ValueError: If the path is unsafe or the secret is missing or empty
            requests.RequestException: If the request fails
        """
        if not secret_path or not isinstance(secret_path, str):
            raise ValueError("secret_path must be a non-empty string")

        if ".." in secret_path or secret_path.startswith("//"):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Path traversal attempts are not allowed."
            )

        if not re.match(r"^[a-zA-Z0-9/_-]+$", secret_path):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Only alphanumeric characters, slashes, underscores, and hyphens are allowed."
            )

        if "/data/" not in secret_path:
            mount, _, rest = secret_path.partition("/")
            secret_path = f"{mount}/data/{rest}" if rest else f"{mount}/data"

        url = f"{self.vault_addr}/v1/{secret_path}"
        logger.debug(f"Fetching secret from: {url}")

        response = requests.get(url, headers=self.headers, timeout=self.timeout)

        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {secret_path}")

        response.raise_for_status()

        secret_data = response.json().get("data", {}).get("data", {})
        if not secret_data:
            raise ValueError(f"No data found in secret at path: {secret_path}")

        return secret_data

    def get_store_credentials(self, store: str) -> Dict[str, Any]:
        """
        Fetch credentials for one store

        Args:
            store: "source" or "target"

        Returns:
            The secret data with a default ``port`` filled in

        Raises:
            ValueError: If the store is unknown or required fields are missing
        """
        if store not in STORE_NAMES:
            raise ValueError(
                f"Unsupported store: {store!r}. Must be one of {', '.join(STORE_NAMES)}."
            )

        secret_data = dict(self.get_secret(f"secret/database/{store}"))

        # a full ODBC string stands in for the individual source fields
        if store == "source" and "connection_string" in secret_data:
            return secret_data

        missing_fields = [f for f in REQUIRED_FIELDS[store] if f not in secret_data]
        if missing_fields:
            raise ValueError(
                f"Missing required fields in {store} secret: {', '.join(missing_fields)}"
            )

        secret_data.setdefault("port", DEFAULT_PORTS[store])

        logger.info(f"Fetched {store} store credentials from Vault")
        return secret_data

    def health_check(self) -> bool:
        """True if Vault answers as initialized and unsealed (active or standby)."""
        url = f"{self.vault_addr}/v1/sys/health"

        try:
            response = requests.get(url, timeout=5)
            return response.status_code in (200, 429, 472, 473)
        except requests.RequestException as e:
            logger.error(f"Vault health check failed: {e}")
            return False
