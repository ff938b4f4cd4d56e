"""Retry ceiling and exponential backoff policy."""

from __future__ import annotations

import random
from dataclasses import dataclass, field

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY_SECONDS = 1.0
DEFAULT_MAX_DELAY_SECONDS = 300.0
DEFAULT_JITTER_SECONDS = 1.0


@dataclass(frozen=True)
class RetryPolicy:
    """Decides how long to wait before retrying an action, and when to give up.

    The delay after a failure at ``retry_count`` is
    ``min(max_delay, base_delay * 2**retry_count + jitter)`` with jitter drawn
    uniformly from ``[0, jitter_seconds)``, so retries of many queued actions do
    not all land at the same instant.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS
    max_delay_seconds: float = DEFAULT_MAX_DELAY_SECONDS
    jitter_seconds: float = DEFAULT_JITTER_SECONDS
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.base_delay_seconds <= 0 or self.max_delay_seconds <= 0:
            raise ValueError("backoff delays must be positive")
        if self.jitter_seconds < 0:
            raise ValueError("jitter_seconds must not be negative")

    def backoff_delay(self, retry_count: int) -> float:
        """Seconds to wait after a failed attempt made at ``retry_count``."""
        # Cap the exponent so very large counts cannot overflow the float.
        exponent = min(retry_count, 32)
        jitter = self.rng.uniform(0, self.jitter_seconds) if self.jitter_seconds else 0.0
        return min(self.max_delay_seconds, self.base_delay_seconds * 2**exponent + jitter)

    def is_exhausted(self, retry_count: int) -> bool:
        """True if an action at ``retry_count`` must not be retried again."""
        return retry_count >= self.max_retries
