"""Cancellation signal shared by every component of one discovery cycle."""

import threading
from typing import Optional


class OperationCancelled(Exception):
    """Raised inside a component to unwind after cancellation.

    Never escapes a public discovery operation.
    """


class CancellationToken:
    """Thread-safe, one-shot cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; True if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()

    def __repr__(self) -> str:
        state = "cancelled" if self.is_cancelled else "active"
        return f"<CancellationToken {state}>"
