"""Retry scheduling for offline sessions.

This module provides:
- RetryPolicy: exponential backoff parameters
- Backoff: per-session attempt counter producing bounded delays
- TRANSIENT_ERRORS: failures that leave the session offline rather than broken
"""

from __future__ import annotations

from dataclasses import dataclass

from progresssync.client.api import NetworkError, ServerUnavailableError

# Default retry configuration
DEFAULT_INITIAL_BACKOFF = 5.0  # seconds
DEFAULT_MAX_BACKOFF = 60.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Errors after which a later attempt may succeed
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    NetworkError,
    ServerUnavailableError,
    TimeoutError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff parameters.

    Attributes:
        initial_backoff: Delay before the first retry, in seconds.
        max_backoff: Upper bound for any delay, in seconds.
        backoff_multiplier: Growth factor between consecutive retries.
    """

    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER

    def delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = self.initial_backoff * self.backoff_multiplier ** max(attempt - 1, 0)
        return min(delay, self.max_backoff)


class Backoff:
    """Tracks consecutive failures of one session."""

    def __init__(self, policy: RetryPolicy | None = None) -> None:
        self._policy = policy or RetryPolicy()
        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Consecutive failures since the last success."""
        return self._attempts

    def next_delay(self) -> float:
        """Record a failure and return how long to wait before retrying."""
        self._attempts += 1
        return self._policy.delay(self._attempts)

    def reset(self) -> None:
        """Record a success."""
        self._attempts = 0
