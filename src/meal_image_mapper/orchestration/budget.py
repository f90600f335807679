# src/meal_image_mapper/orchestration/budget.py
from __future__ import annotations

import time
from typing import Callable, Optional


class TimeBudget:
    """
    Wall-clock execution budget with a safety buffer.

    Remaining time comes from `remaining_fn` when the host provides one (e.g. a
    Lambda context's remaining milliseconds, converted to seconds); otherwise it
    is `budget_seconds` minus the time elapsed since construction.
    """

    def __init__(
        self,
        budget_seconds: float,
        buffer_seconds: float = 30.0,
        *,
        remaining_fn: Optional[Callable[[], float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.budget_seconds = budget_seconds
        self.buffer_seconds = buffer_seconds
        self._remaining_fn = remaining_fn
        self._clock = clock
        self._started = clock()

    def elapsed_seconds(self) -> float:
        return self._clock() - self._started

    def elapsed_ms(self) -> int:
        return int(self.elapsed_seconds() * 1000)

    def remaining_seconds(self) -> float:
        if self._remaining_fn is not None:
            return float(self._remaining_fn())
        return self.budget_seconds - self.elapsed_seconds()

    def should_stop(self) -> bool:
        """True when less than the safety buffer is left."""
        return self.remaining_seconds() < self.buffer_seconds
