"""Exponential reconnect backoff.

The policy itself is pure: the connection loop owns the current delay and
asks the policy for the next one.
"""

from __future__ import annotations

from dataclasses import dataclass

from wstelem.errors import ConfigError

MIN_DELAY_MS = 500
MAX_DELAY_MS = 30_000
BACKOFF_FACTOR = 2.0


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Bounded exponential backoff (``min → min*f → … → max``)."""

    min_delay_ms: int = MIN_DELAY_MS
    max_delay_ms: int = MAX_DELAY_MS
    factor: float = BACKOFF_FACTOR

    def __post_init__(self) -> None:
        if self.min_delay_ms <= 0:
            raise ConfigError(f"min_delay_ms must be positive, got {self.min_delay_ms}")
        if self.max_delay_ms < self.min_delay_ms:
            raise ConfigError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= "
                f"min_delay_ms ({self.min_delay_ms})"
            )
        if self.factor < 1.0:
            raise ConfigError(f"factor must be >= 1.0, got {self.factor}")

    def next(self, current_delay_ms: int) -> int:
        """Return the delay that follows *current_delay_ms*, clamped to the maximum."""
        return min(self.max_delay_ms, int(current_delay_ms * self.factor))

    def reset(self) -> int:
        """Return the starting delay used after a healthy session."""
        return self.min_delay_ms
