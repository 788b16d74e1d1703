"""Reconnection policy.

Backoff is exponential with no jitter: attempt N (0-based) waits
``base_delay * 2**N`` seconds. The attempt ceiling is the only cap. Once the
ceiling is reached auto-reconnect is disabled until explicitly re-enabled.

This module contains NO timers and NO async.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_BASE_DELAY = 1.0
NORMAL_CLOSURE_CODE = 1000


def backoff_delay(attempt_count: int, base_delay: float) -> float:
    """Return the delay in seconds before the next attempt."""
    return base_delay * (2**attempt_count)


@dataclass(frozen=True)
class ReconnectionStatus:
    """Public snapshot of the reconnection state."""

    enabled: bool
    attempts: int
    max_attempts: int
    has_resumption_handle: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "attempts": self.attempts,
            "maxAttempts": self.max_attempts,
            "hasResumptionHandle": self.has_resumption_handle,
        }


@dataclass
class ReconnectionState:
    """Mutable attempt budget owned by a single client.

    Attributes:
        enabled: Whether abnormal closures trigger reconnection.
        attempts: Attempts scheduled since the last successful connection.
        max_attempts: Attempt ceiling.
        base_delay: Delay of the first attempt (seconds).
    """

    enabled: bool = True
    attempts: int = 0
    max_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    base_delay: float = DEFAULT_RECONNECT_BASE_DELAY

    def can_retry(self) -> bool:
        return self.enabled and self.attempts < self.max_attempts

    def next_delay(self) -> float | None:
        """Consume one attempt and return its delay.

        Returns None, and disables reconnection, when the budget is spent.
        """
        if self.attempts >= self.max_attempts:
            self.enabled = False
            return None

        delay = backoff_delay(self.attempts, self.base_delay)
        self.attempts += 1
        return delay

    def reset(self) -> None:
        """Called after a successful connection."""
        self.attempts = 0

    def set_enabled(self, enabled: bool) -> None:
        """Toggle auto-reconnect; either way the attempt budget starts over."""
        self.enabled = enabled
        self.attempts = 0

    def snapshot(self, *, has_resumption_handle: bool) -> ReconnectionStatus:
        return ReconnectionStatus(
            enabled=self.enabled,
            attempts=self.attempts,
            max_attempts=self.max_attempts,
            has_resumption_handle=has_resumption_handle,
        )
