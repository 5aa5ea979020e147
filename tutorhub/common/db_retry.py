"""Retry helper for database reads.

A dropped or timed-out connection surfaces as an ``OperationalError`` (or a
``DBAPIError`` flagged ``connection_invalidated``). Lookups wrapped in
:func:`execute_with_retry` are retried with exponential backoff plus jitter so
a short outage does not fail the request. Writes are never wrapped.
"""

import random
import time
from typing import Callable, Optional, TypeVar

from flask import current_app
from sqlalchemy.exc import DBAPIError, OperationalError

from tutorhub import db

T = TypeVar("T")


def is_transient_error(error: BaseException) -> bool:
    """Return ``True`` if ``error`` looks like a connectivity failure."""
    if isinstance(error, OperationalError):
        return True
    if isinstance(error, DBAPIError):
        return bool(error.connection_invalidated)
    return isinstance(error, TimeoutError)


def backoff_delay(attempt: int, delay: float) -> float:
    """Delay before retry number ``attempt`` (1-based)."""
    return delay * (2 ** (attempt - 1)) + random.uniform(0, delay)


def execute_with_retry(
    operation: Callable[[], T],
    max_retries: Optional[int] = None,
    delay: Optional[float] = None,
) -> T:
    """Run ``operation``, retrying transient database errors.

    Args:
        operation: Zero-argument callable performing the read.
        max_retries: Total number of attempts. Defaults to
            ``DB_RETRY_ATTEMPTS`` from the app config.
        delay: Base delay in seconds. Defaults to ``DB_RETRY_DELAY_SECONDS``.

    Raises:
        The last transient error once the attempts are used up, or any
        non-transient error immediately.
    """
    if max_retries is None:
        max_retries = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    if delay is None:
        delay = current_app.config.get("DB_RETRY_DELAY_SECONDS", 1.0)
    max_retries = max(1, max_retries)

    for attempt in range(1, max_retries + 1):
        try:
            return operation()
        except (DBAPIError, TimeoutError) as exc:
            if not is_transient_error(exc):
                raise
            db.session.rollback()
            if attempt == max_retries:
                current_app.logger.error(
                    f"Database operation failed after {max_retries} attempts: {exc}"
                )
                raise
            if attempt == 1:
                current_app.logger.warning(
                    f"Database operation failed, will retry {max_retries - 1} more times: {exc}"
                )
            time.sleep(backoff_delay(attempt, delay))
