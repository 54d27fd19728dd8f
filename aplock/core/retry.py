"""Attempt budget and backoff for one lock acquisition."""

from __future__ import annotations

from enum import Enum
from typing import Callable

DEFAULT_BACKOFF_STEP = 5.0
DEFAULT_BACKOFF_MAX = 60.0


class RetryState(Enum):
    ATTEMPTING = "attempting"
    SLEEPING = "sleeping"
    STALE_RECLAIMED = "stale_reclaimed"
    EXHAUSTED = "exhausted"
    ACQUIRED = "acquired"
    FATAL = "fatal"


TERMINAL_STATES = frozenset({RetryState.EXHAUSTED, RetryState.ACQUIRED, RetryState.FATAL})


class RetryScheduler:
    """State machine driving ``retries + 1`` claim attempts.

    The first attempt runs immediately. Every later attempt is preceded by a
    sleep whose length starts at zero and grows by ``step`` after each sleep,
    up to ``cap``. Reclaiming a stale lock skips the next sleep and, on the
    last attempt, adds one more so the reclamation does not use up the budget.
    """

    def __init__(
        self,
        retries: int,
        sleep: Callable[[float], None],
        *,
        step: float = DEFAULT_BACKOFF_STEP,
        cap: float = DEFAULT_BACKOFF_MAX,
    ) -> None:
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self.tries = retries + 1
        self.attempt = 0
        self.delay = 0.0
        self.step = step
        self.cap = cap
        self.state = RetryState.ATTEMPTING
        self._sleep = sleep
        self._skip_sleep = True

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def next_attempt(self) -> bool:
        """Advance to the next attempt; False once the budget is spent."""

        if self.finished:
            raise RuntimeError(f"scheduler already {self.state.value}")
        if self.attempt >= self.tries:
            self.state = RetryState.EXHAUSTED
            return False
        if not self._skip_sleep:
            self.state = RetryState.SLEEPING
            self._sleep(self.delay)
            self.delay = min(self.delay + self.step, self.cap)
        self._skip_sleep = False
        self.attempt += 1
        self.state = RetryState.ATTEMPTING
        return True

    def stale_reclaimed(self) -> None:
        if self.state is not RetryState.ATTEMPTING:
            raise RuntimeError(f"cannot reclaim while {self.state.value}")
        self.state = RetryState.STALE_RECLAIMED
        self._skip_sleep = True
        if self.attempt >= self.tries:
            self.tries += 1

    def acquired(self) -> None:
        self.state = RetryState.ACQUIRED

    def fatal(self) -> None:
        self.state = RetryState.FATAL


__all__ = [
    "DEFAULT_BACKOFF_MAX",
    "DEFAULT_BACKOFF_STEP",
    "RetryScheduler",
    "RetryState",
]
