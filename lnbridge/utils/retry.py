"""Backoff policies with jitter.

``RetryConfig`` describes how long to wait before the next attempt. The lndhub
client drives its own attempt loop; policies here only compute delays.

Usage:
    delay = RATE_LIMIT_BACKOFF.calculate_delay(attempt)
    await asyncio.sleep(delay)
"""

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry delays.

    Attributes:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Base delay in seconds before first retry (default: 1.0)
        max_delay: Maximum delay in seconds between retries (default: 60.0)
        backoff_factor: Exponential backoff multiplier (default: 2.0)
        jitter: Whether to add random jitter to delays (default: True)
        jitter_range: Range for jitter as fraction of delay (default: 0.1 = ±10%)

    Examples:
        # Fixed 1-2s wait, same on every attempt
        RetryConfig(base_delay=1.5, max_delay=1.5, backoff_factor=1.0, jitter_range=1 / 3)

        # Fast retries for transient errors
        RetryConfig(max_retries=5, base_delay=0.5, max_delay=5.0)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.1

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if not 0 <= self.jitter_range <= 1:
            raise ValueError("jitter_range must be between 0 and 1")

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Delay in seconds, with exponential backoff and optional jitter
        """
        delay = min(self.base_delay * (self.backoff_factor**attempt), self.max_delay)

        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay = max(0, delay + random.uniform(-jitter_amount, jitter_amount))

        return delay

    @classmethod
    def uniform(cls, min_delay: float, max_delay: float) -> "RetryConfig":
        """Build a constant policy whose delays fall uniformly in [min_delay, max_delay]."""
        if min_delay <= 0 or max_delay < min_delay:
            raise ValueError("expected 0 < min_delay <= max_delay")
        middle = (min_delay + max_delay) / 2
        return cls(
            base_delay=middle,
            max_delay=middle,
            backoff_factor=1.0,
            jitter=max_delay > min_delay,
            jitter_range=(max_delay - min_delay) / (max_delay + min_delay),
        )


# Wait after an HTTP 429 from an lndhub backend
RATE_LIMIT_BACKOFF = RetryConfig.uniform(1.0, 2.0)

# Short waits after transport failures (connection refused, reset, ...)
NETWORK_BACKOFF = RetryConfig(
    max_retries=5,
    base_delay=0.25,
    max_delay=2.0,
    backoff_factor=2.0,
)
