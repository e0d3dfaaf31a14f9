"""One retry-with-backoff helper shared by page fetches and document downloads."""

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

T = TypeVar("T")

LINEAR = "linear"
EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to call, and how long to wait between calls."""

    max_attempts: int = 3
    base_delay: float = 0.5
    backoff: str = LINEAR
    factor: float = 2.0  # exponential multiplier
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        if self.base_delay <= 0:
            return 0.0
        if self.backoff == EXPONENTIAL:
            delay = self.base_delay * (self.factor ** (attempt - 1))
        else:
            delay = self.base_delay * attempt
        return min(delay, self.max_delay)


@dataclass
class RetryState:
    """Transient bookkeeping for one retried call."""

    attempt: int = 0
    last_error: BaseException | None = None
    delay: float = 0.0


def retry_call(
    fn: Callable[[], T],
    policy: RetryPolicy,
    retryable: Callable[[BaseException], bool],
    *,
    on_retry: Callable[[RetryState], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn until it returns, it raises a non-retryable error, or attempts run out.
    The last error is re-raised unchanged so callers can inspect status codes.
    """
    state = RetryState()
    while True:
        state.attempt += 1
        try:
            return fn()
        except Exception as e:
            state.last_error = e
            if state.attempt >= policy.max_attempts or not retryable(e):
                raise
            state.delay = policy.delay_for(state.attempt)
            if on_retry is not None:
                on_retry(state)
            if state.delay > 0:
                sleep(state.delay)
