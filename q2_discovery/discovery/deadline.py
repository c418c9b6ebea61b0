"""Deadline tracking for discovery and probe operations."""

import time
from typing import Optional


class Deadline:
    """Tracks a single overall timeout on the monotonic clock."""

    def __init__(self, timeout: float):
        """Initialize deadline.

        Args:
            timeout: Overall timeout in seconds.
        """
        self.timeout = timeout
        self._start_time: Optional[float] = None

    @property
    def started_at(self) -> Optional[float]:
        return self._start_time

    @property
    def elapsed(self) -> float:
        """Seconds elapsed since start."""
        if self._start_time is None:
            return 0.0
        return time.monotonic() - self._start_time

    @property
    def remaining(self) -> float:
        """Seconds remaining before timeout."""
        return max(0.0, self.timeout - self.elapsed)

    @property
    def is_expired(self) -> bool:
        """Whether the timeout has expired."""
        return self.elapsed >= self.timeout

    @property
    def expires_at(self) -> float:
        """Monotonic time at which the deadline expires."""
        if self._start_time is None:
            return time.monotonic() + self.timeout
        return self._start_time + self.timeout

    def start(self) -> "Deadline":
        """Start the timer. Returns self for chaining."""
        self._start_time = time.monotonic()
        return self
