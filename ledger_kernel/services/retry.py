"""
Retry with backoff for contended ledger operations.

ConcurrencyError means the whole transaction was rolled back (lock timeout,
deadlock, serialization failure), so the operation can be re-run from the
start.  Any other error is re-raised immediately.
"""

import time
from typing import Callable, TypeVar

from ledger_kernel.exceptions import ConcurrencyError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Exponential delay before retry number ``attempt`` (1-based)."""
    return base_delay * (2 ** (attempt - 1))


def run_with_retry(
    fn: Callable[[], T],
    max_attempts: int = 3,
    base_delay: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` until it succeeds or ``max_attempts`` is exhausted.

    Raises:
        ConcurrencyError: From the last attempt.
        ValueError: If max_attempts < 1.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except ConcurrencyError as exc:
            if attempt == max_attempts:
                logger.error(
                    "retry_exhausted",
                    extra={"attempts": attempt, "operation": exc.operation},
                )
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "concurrency_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "delay_s": delay,
                    "operation": exc.operation,
                },
            )
            sleep(delay)
    raise AssertionError("unreachable")
