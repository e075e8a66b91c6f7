"""Retry-with-backoff helper."""

import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger("job_board.retry")

T = TypeVar("T")


def backoff_delays(max_retries: int, base_delay: float) -> list[float]:
    """Delays before each retry: base, 2*base, 4*base, ..."""
    return [base_delay * (2 ** i) for i in range(max_retries)]


def retry_with_backoff(
    fn: Callable[[], T],
    is_retryable: Callable[[Exception], bool],
    max_retries: int = 3,
    base_delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds, retrying retryable errors with exponential backoff.

    With the defaults a persistently failing call is attempted four times,
    sleeping 2s, 4s and 8s in between, and the last error is re-raised.
    Non-retryable errors propagate immediately.
    """
    delays = backoff_delays(max_retries, base_delay)
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e) or attempt >= max_retries:
                raise
            delay = delays[attempt]
            attempt += 1
            logger.warning(
                "Retryable error (%s). Retry attempt %d/%d in %.1fs",
                e, attempt, max_retries, delay,
            )
            sleep(delay)
