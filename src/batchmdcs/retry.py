"""Bounded linear retry for cluster service calls."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_INTERVAL = 10.0
DEFAULT_MAX_RETRIES = 5


def retry_linear(
    func: Callable[[], T],
    *,
    is_transient: Callable[[BaseException], bool],
    interval: float = DEFAULT_RETRY_INTERVAL,
    max_retries: int = DEFAULT_MAX_RETRIES,
    description: str = "request",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func``, retrying transient failures with a fixed delay.

    Args:
        func: Zero-argument callable performing one service request.
        is_transient: Predicate deciding whether an exception may be retried.
        interval: Seconds to wait between attempts.
        max_retries: Retries after the first attempt; 0 disables retrying.
        description: Short label used in log messages.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Whatever ``func`` returns.

    Raises:
        The last exception raised by ``func`` once retries are exhausted, or
        the first non-transient exception.
    """
    attempt = 0
    while True:
        try:
            return func()
        except Exception as exc:
            if attempt >= max_retries or not is_transient(exc):
                raise
            attempt += 1
            logger.debug(
                "%s failed (%s), retrying in %.1fs (%d/%d)",
                description,
                exc,
                interval,
                attempt,
                max_retries,
            )
            sleep(interval)
