"""
Randomized inter-page delay for sequential listing walks.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable


class InterPageDelay:
    """
    Sleeps a random duration within ``[min_seconds, max_seconds]`` between pages.
    """

    def __init__(
        self,
        *,
        min_seconds: float,
        max_seconds: float,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.min_seconds = max(0.0, min_seconds)
        self.max_seconds = max(self.min_seconds, max_seconds)
        self._sleep = sleep
        self._rng = rng or random.Random()

    def wait(self) -> float:
        """
        Block for one randomized delay and return the seconds slept.
        """

        seconds = self._rng.uniform(self.min_seconds, self.max_seconds)
        self._sleep(seconds)
        return seconds
