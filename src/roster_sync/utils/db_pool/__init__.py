"""
Connection pools for the source (ODBC) and target (PostgreSQL) stores.

The process holds one pool per store, created by ``initialize_pools``
at startup and closed by ``close_pools`` on exit.
"""

import logging
from typing import Any

from .base import (
    BaseConnectionPool,
    ConnectionFailedError,
    ConnectionPoolError,
    PoolClosedError,
    PooledConnection,
    PoolExhaustedError,
)
from .odbc import ODBCConnectionPool
from .postgres import PostgresConnectionPool

logger = logging.getLogger(__name__)

_source_pool: ODBCConnectionPool | None = None
_target_pool: PostgresConnectionPool | None = None


def initialize_pools(
    source_config: dict[str, Any] | None = None,
    target_config: dict[str, Any] | None = None,
    **pool_kwargs: Any,
) -> None:
    """
    Create the process-wide pools

    Args:
        source_config: ODBCConnectionPool arguments (connection fields or
            connection_string, driver, query_timeout)
        target_config: PostgresConnectionPool arguments (host, port,
            database, user, password, statement_timeout)
        **pool_kwargs: Sizing and timeout arguments shared by both pools
    """
    global _source_pool, _target_pool

    if source_config:
        logger.info("Initializing source connection pool")
        _source_pool = ODBCConnectionPool(**source_config, **pool_kwargs)

    if target_config:
        logger.info("Initializing target connection pool")
        _target_pool = PostgresConnectionPool(**target_config, **pool_kwargs)


def get_source_pool() -> ODBCConnectionPool:
    if _source_pool is None:
        raise RuntimeError("Source pool not initialized. Call initialize_pools() first.")
    return _source_pool


def get_target_pool() -> PostgresConnectionPool:
    if _target_pool is None:
        raise RuntimeError("Target pool not initialized. Call initialize_pools() first.")
    return _target_pool


def close_pools() -> None:
    global _source_pool, _target_pool

    if _source_pool:
        _source_pool.close()
        _source_pool = None

    if _target_pool:
        _target_pool.close()
        _target_pool = None

    logger.info("All connection pools closed")


__all__ = [
    "BaseConnectionPool",
    "ODBCConnectionPool",
    "PostgresConnectionPool",
    "PooledConnection",
    "ConnectionPoolError",
    "ConnectionFailedError",
    "PoolExhaustedError",
    "PoolClosedError",
    "initialize_pools",
    "get_source_pool",
    "get_target_pool",
    "close_pools",
]
