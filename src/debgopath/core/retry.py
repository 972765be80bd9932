"""Retry logic with exponential backoff for transient failures.

Archive downloads go through a caching proxy (apt-cacher-ng) or a public
mirror; both occasionally drop connections or answer with 5xx while a mirror
sync is in progress. Only errors classified as transient are retried.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from debgopath.time.abc import Time

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_transient(
    func: Callable[[], T],
    *,
    time: Time,
    max_attempts: int,
    retry_on: tuple[type[Exception], ...],
    base_delay: float = 1.0,
    backoff_factor: float = 2.0,
    description: str = "operation",
) -> T:
    """Call func, retrying on the given exception types with exponential backoff.

    Delay calculation: delay = base_delay * (backoff_factor ** (attempt - 1)),
    i.e. 1s, 2s, 4s with the defaults. Exceptions not listed in retry_on
    propagate immediately; on the final attempt the transient exception is
    re-raised to the caller.

    Args:
        func: Zero-argument callable to execute
        time: Time implementation used for sleeping between attempts
        max_attempts: Maximum number of attempts (at least 1)
        retry_on: Exception types considered transient
        base_delay: Initial delay in seconds
        backoff_factor: Multiplier for exponential backoff
        description: Human-readable description used in log messages

    Raises:
        Exception: Re-raises the last exception after max_attempts exhausted
    """
    attempts = max(1, max_attempts)
    for attempt in range(attempts):
        if attempt > 0:
            delay = base_delay * (backoff_factor ** (attempt - 1))
            logger.info(
                "Retrying %s after %.1fs (attempt %d/%d)", description, delay, attempt + 1, attempts
            )
            time.sleep(delay)

        try:
            return func()
        except retry_on as e:
            if attempt == attempts - 1:
                raise
            logger.warning("%s failed: %s", description, e)

    msg = f"{description} completed without result or exception"
    raise RuntimeError(msg)
