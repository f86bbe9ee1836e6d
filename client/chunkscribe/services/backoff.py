"""Retry delays for segment delivery."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable

MIN_DELAY = 0.25
JITTER = 0.10


def compute_backoff(
    attempt: int,
    base: float,
    cap: float,
    *,
    rand: float = 0.5,
    jitter: float = JITTER,
    floor: float = MIN_DELAY,
) -> float:
    """``min(cap, base * 2**attempt)`` scaled by ``1 ± jitter``.

    ``rand`` is a uniform draw in [0, 1); 0.5 means no perturbation.
    """
    delay = min(cap, base * (2 ** max(attempt, 0)))
    delay *= 1.0 + jitter * (2.0 * rand - 1.0)
    return max(floor, delay)


@dataclass(slots=True)
class RetryPolicy:
    base: float = 1.0
    cap: float = 60.0
    max_attempts: int = 5
    rand: Callable[[], float] = field(default=random.random)

    def delay(self, attempt: int) -> float:
        return compute_backoff(attempt, self.base, self.cap, rand=self.rand())

    def exhausted(self, attempt: int, *, rate_limited: bool) -> bool:
        if rate_limited:
            return False
        return attempt > self.max_attempts
