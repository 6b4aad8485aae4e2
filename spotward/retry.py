"""Bounded retry policy shared by polling and SSH.

A policy is a fixed number of attempts spaced by a fixed delay, so the
worst case is always ``max_attempts * delay`` and never a wall-clock
deadline.

Example:
    from spotward.retry import CLOUD_POLL

    retrying = CLOUD_POLL.retrying(on=_PendingError)
    status = retrying(poll_once)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from loguru import logger
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

type ExceptionTypes = type[BaseException] | tuple[type[BaseException], ...]


def _log_retry(description: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.debug(
            f"{description}: attempt {state.attempt_number} failed "
            f"({type(exc).__name__}: {exc}), retrying in {delay:.1f}s"
        )

    return before_sleep


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Fixed attempts x fixed delay.

    Args:
        max_attempts: Attempts including the first one.
        delay: Seconds between attempts.
        sleep: Sleep function, swapped out in tests.
    """

    max_attempts: int
    delay: float
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")

    @property
    def bound(self) -> float:
        """Worst-case time spent sleeping."""
        return (self.max_attempts - 1) * self.delay

    def with_sleep(self, sleep: Callable[[float], None]) -> RetryPolicy:
        return replace(self, sleep=sleep)

    def retrying(self, on: ExceptionTypes, description: str = "operation") -> Retrying:
        """Build a tenacity controller that retries only ``on``.

        The last exception is re-raised once attempts run out.
        """
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.delay),
            retry=retry_if_exception_type(on),
            sleep=self.sleep,
            before_sleep=_log_retry(description),
            reraise=True,
        )


CLOUD_POLL = RetryPolicy(max_attempts=20, delay=10.0)
"""Capacity-request and instance polling: 20 attempts, 10s apart."""

SSH_CONNECT = RetryPolicy(max_attempts=3, delay=5.0)
"""SSH session establishment while the instance finishes booting."""
