"""
Pytest configuration and fixtures for roster-sync tests.
Provides shared fixtures for settings and environment setup.
"""

import os
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(autouse=True)
def set_test_env_vars() -> None:
    """Set default test environment variables if not already set."""
    defaults = {
        "SOURCE_HOST": "localhost",
        "SOURCE_DATABASE": "etu",
        "SOURCE_USER": "roster",
        "SOURCE_PASSWORD": "roster_password",
        "TARGET_HOST": "localhost",
        "TARGET_PORT": "5432",
        "TARGET_DATABASE": "robert2",
        "TARGET_USER": "postgres",
        "TARGET_PASSWORD": "postgres_secure_password",
        "TAG_ID": "3",
        "VAULT_ADDR": "http://localhost:8200",
        "VAULT_TOKEN": "dev-root-token",
    }

    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value


@pytest.fixture
def settings_env() -> dict[str, str]:
    """A complete, valid settings environment independent of os.environ."""
    return {
        "SOURCE_HOST": "mysql.internal",
        "SOURCE_PORT": "3306",
        "SOURCE_DATABASE": "etu",
        "SOURCE_USER": "roster",
        "SOURCE_PASSWORD": "secret",
        "TARGET_HOST": "pg.internal",
        "TARGET_PORT": "5433",
        "TARGET_DATABASE": "robert2",
        "TARGET_USER": "robert",
        "TARGET_PASSWORD": "secret2",
        "TAG_ID": "7",
        "SYNC_GAP_MINUTES": "10",
    }
