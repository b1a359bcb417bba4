"""
Retry with exponential backoff for transient database errors

Sync passes are never retried in-run; this is used only while
establishing store connectivity at startup, where a database that is
still coming up should not kill the process on the first refusal.

Usage:
    from roster_sync.utils.retry import retry_database_operation

    @retry_database_operation(max_retries=3, base_delay=1.0)
    def ping(pool):
        with pool.acquire() as conn:
            ...
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

RETRYABLE_PATTERNS = (
    "connection",
    "timeout",
    "timed out",
    "deadlock",
    "lost connection",
    "server has gone away",
    "can't connect",
    "unable to connect",
    "could not connect",
    "connection refused",
    "connection reset",
    "broken pipe",
    "network error",
    "communication link failure",
    "the database system is starting up",
)

RETRYABLE_EXCEPTION_NAMES = (
    "connectionerror",
    "timeouterror",
    "operationalerror",
    "interfaceerror",
    "poolexhaustederror",
)


def is_retryable_db_exception(exception: Exception) -> bool:
    """
    Tell transient database failures from permanent ones

    Connection, timeout and deadlock errors are retryable; syntax errors,
    constraint violations and authentication failures are not.
    """
    exception_str = str(exception).lower()
    exception_type = type(exception).__name__.lower()

    if "password authentication failed" in exception_str or "access denied" in exception_str:
        return False

    if exception_type in RETRYABLE_EXCEPTION_NAMES:
        return True

    return any(pattern in exception_str for pattern in RETRYABLE_PATTERNS)


def compute_backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> float:
    """Delay before retry number ``attempt + 1``: base * 2^attempt, capped, +/-25% jitter."""
    delay = min(base_delay * (2.0 ** attempt), max_delay)
    if jitter:
        jitter_amount = delay * 0.25
        delay = max(0.1, delay + random.uniform(-jitter_amount, jitter_amount))
    return delay


def retry_database_operation(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator retrying a function on transient database errors

    Non-retryable errors are raised immediately. After ``max_retries``
    retries the last error is raised.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for a single delay
        jitter: Randomize delays by +/-25%
        on_retry: Callback(attempt, exception, delay) before each retry
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            func_name = getattr(func, "__name__", "function")

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable_db_exception(e):
                        logger.error(
                            f"Non-retryable database error in {func_name}: "
                            f"{type(e).__name__}: {e}"
                        )
                        raise

                    if attempt == max_retries:
                        logger.error(
                            f"Max retries ({max_retries}) exceeded for {func_name}: "
                            f"{type(e).__name__}: {e}"
                        )
                        raise

                    delay = compute_backoff_delay(attempt, base_delay, max_delay, jitter)
                    logger.warning(
                        f"Retryable database error in {func_name} "
                        f"(attempt {attempt + 1}/{max_retries}): "
                        f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                    )

                    if on_retry:
                        try:
                            on_retry(attempt + 1, e, delay)
                        except Exception as callback_error:
                            logger.error(f"Error in retry callback: {callback_error}")

                    time.sleep(delay)

            raise RuntimeError(f"Unexpected exit from retry loop in {func_name}")

        return wrapper
    return decorator
