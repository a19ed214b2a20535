"""Retry budgets and backoff delays."""

import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_MIN_RETRIES = 5
DEFAULT_MAX_PERCENT_RETRIES = 10


class RetryBudget:
    """Number of part failures an upload tolerates before it is aborted."""

    def __init__(
        self,
        part_count: int,
        min_retries: int = DEFAULT_MIN_RETRIES,
        max_percent_retries: int = DEFAULT_MAX_PERCENT_RETRIES,
    ) -> None:
        self.part_count = part_count
        self.max_retries = max(min_retries, part_count * max_percent_retries // 100)

    def allows(self, error_count: int) -> bool:
        """Return True while ``error_count`` failures are still within budget."""
        return error_count <= self.max_retries

    def exhausted(self, error_count: int) -> bool:
        return error_count > self.max_retries

    @staticmethod
    def wave_size(queued: int, error_count: int, parallel_degree: int) -> int:
        """Number of queued parts to re-dispatch in the next retry wave.

        Retries are paced by the number of failures observed so far.
        """
        return min(queued, error_count, parallel_degree)

    def __repr__(self) -> str:
        return f"RetryBudget(part_count={self.part_count}, max_retries={self.max_retries})"


def backoff_delay(failure_count: int, base: float = 0.05, max_delay: Optional[float] = None) -> float:
    """Return the delay before attempt ``failure_count + 1``.

    Grows as ``base * 2 ** failure_count``, capped at ``max_delay``
    (ten times ``base`` by default).
    """
    if max_delay is None:
        max_delay = base * 10
    return min(base * 2**failure_count, max_delay)


def impose_backoff(failure_count: int, description: str, base: float = 0.05) -> None:
    """Sleep for the backoff delay of the given failure count."""
    delay = backoff_delay(failure_count, base)
    logger.info(f"{description}: retrying in {delay:.2f}s (failure {failure_count})")
    time.sleep(delay)
