"""
Reconnect backoff policy.

delay(attempt) = uniform(0, min(cap, base * multiplier ** (attempt - 1)))
with full jitter, or the capped exponential value itself without it.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Backoff:
    """
    Bounded exponential backoff.

    Args:
        base: Delay before the first retry, in seconds
        cap: Upper bound for any delay
        multiplier: Growth factor per attempt
        jitter: Spread each delay uniformly over [0, delay]
        rng: Random source (inject a seeded ``random.Random`` in tests)
    """
    base: float = 1.0
    cap: float = 30.0
    multiplier: float = 2.0
    jitter: bool = True
    rng: Optional[random.Random] = field(default=None, repr=False)

    def __post_init__(self):
        if self.base < 0 or self.cap < 0:
            raise ValueError("backoff delays must be non-negative")
        if self.multiplier < 1:
            raise ValueError("backoff multiplier must be >= 1")
        if self.rng is None:
            self.rng = random.Random()

    def ceiling(self, attempt: int) -> float:
        """Capped exponential delay for a 1-based attempt number."""
        if attempt < 1:
            return 0.0
        try:
            raw = self.base * (self.multiplier ** (attempt - 1))
        except OverflowError:
            return self.cap
        return min(self.cap, raw)

    def delay(self, attempt: int) -> float:
        ceiling = self.ceiling(attempt)
        if not self.jitter:
            return ceiling
        return self.rng.uniform(0.0, ceiling)
