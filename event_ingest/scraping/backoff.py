"""
Exponential backoff policy shared by page fetches and image downloads.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")


class BackoffPolicy:
    """
    Computes retry delays as ``base * multiplier**attempt + uniform(0, jitter)``.

    ``attempt`` is zero-based: attempt 0 is the first retry after the initial
    call failed. ``next_delay`` returns None once retries are exhausted.
    """

    def __init__(
        self,
        *,
        max_retries: int = 3,
        base_seconds: float = 1.0,
        multiplier: float = 2.0,
        jitter_seconds: float = 1.0,
        max_seconds: float | None = 30.0,
        rng: random.Random | None = None,
    ) -> None:
        self.max_retries = max(0, max_retries)
        self.base_seconds = max(0.0, base_seconds)
        self.multiplier = max(1.0, multiplier)
        self.jitter_seconds = max(0.0, jitter_seconds)
        self.max_seconds = max_seconds
        self._rng = rng or random.Random()

    def next_delay(self, attempt: int) -> float | None:
        if attempt >= self.max_retries:
            return None

        delay = self.base_seconds * (self.multiplier**attempt)
        if self.jitter_seconds > 0:
            delay += self._rng.uniform(0.0, self.jitter_seconds)
        if self.max_seconds is not None:
            delay = min(delay, self.max_seconds)
        return delay


def run_with_backoff(
    operation: Callable[[], T],
    *,
    policy: BackoffPolicy,
    retry_on: tuple[type[BaseException], ...],
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
    should_retry: Callable[[BaseException], bool] | None = None,
) -> T:
    """
    Call `operation`, retrying `retry_on` errors until the policy gives up.

    The last error is re-raised when retries are exhausted, or at once when
    `should_retry` rejects it.
    """

    attempt = 0
    while True:
        try:
            return operation()
        except retry_on as exc:
            if should_retry is not None and not should_retry(exc):
                raise
            delay = policy.next_delay(attempt)
            if delay is None:
                raise
            if on_retry is not None:
                on_retry(attempt + 1, exc, delay)
            sleep(delay)
            attempt += 1
