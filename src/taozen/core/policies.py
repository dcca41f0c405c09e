"""Retry policy for step execution.

RetryConfig defines how a failing step is re-attempted:
- max_attempts: total number of attempts, including the first one
- initial_delay_ms: delay before the second attempt
- backoff_factor: multiplier applied to the delay after each attempt
- max_delay_ms: upper bound on any single delay

Timeouts are configured separately on the step and apply to each
attempt individually.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a step.

    Attributes:
        max_attempts: Maximum number of attempts (>= 1).
        initial_delay_ms: Delay after the first failed attempt, in milliseconds.
        backoff_factor: Multiplier for the delay after each retry.
            E.g., 2.0 means delays are 100ms, 200ms, 400ms...
        max_delay_ms: Cap on the delay between two attempts, in milliseconds.

    Example:
        # 3 attempts, waiting 100ms then 200ms
        config = RetryConfig(
            max_attempts=3,
            initial_delay_ms=100,
            backoff_factor=2,
            max_delay_ms=1000,
        )
    """

    max_attempts: int = 3
    initial_delay_ms: float = 1000
    backoff_factor: float = 2.0
    max_delay_ms: float = 30_000

    def __post_init__(self) -> None:
        """Validate retry configuration."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms cannot be negative")

        if self.max_delay_ms < 0:
            raise ValueError("max_delay_ms cannot be negative")

        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")

    def delay_for_attempt(self, attempt: int) -> float:
        """Calculate the delay after a failed attempt.

        Args:
            attempt: The attempt that just failed (1-indexed).

        Returns:
            Delay in milliseconds before the next attempt.
        """
        delay_ms = self.initial_delay_ms * (self.backoff_factor ** (attempt - 1))
        return min(delay_ms, self.max_delay_ms)

    def should_retry(self, attempt: int) -> bool:
        """Check if another attempt is allowed after ``attempt`` failed.

        Args:
            attempt: The attempt that just failed (1-indexed).

        Returns:
            True if more attempts are available.
        """
        return attempt < self.max_attempts
