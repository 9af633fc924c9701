"""
Cancellation token shared between the agent loop and the tool executor.
"""

import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

# How often blocking waits re-check the token.
POLL_INTERVAL = 0.05


class OperationCancelled(Exception):
    """Raised by ``wait_for`` when the token fires before the future completes."""


class OperationTimedOut(Exception):
    """Raised by ``wait_for`` when the deadline passes before the future completes."""


class CancellationToken:
    """Thread-safe, resettable cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the flag."""
        return self._event.wait(timeout)


def wait_for(
    future: Future,
    token: Optional[CancellationToken] = None,
    timeout: Optional[float] = None,
):
    """
    Wait for ``future`` while observing ``token`` and an optional deadline.

    Args:
        future: The future to wait on
        token: Cancellation token polled while waiting
        timeout: Seconds to wait; None or 0 waits indefinitely

    Returns:
        The future's result

    Raises:
        OperationCancelled: If the token fired first
        OperationTimedOut: If the deadline passed first
    """
    deadline = time.monotonic() + timeout if timeout else None
    while True:
        if token is not None and token.cancelled:
            raise OperationCancelled()
        step = POLL_INTERVAL
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise OperationTimedOut(f"Timed out after {timeout}s")
            step = min(step, remaining)
        try:
            return future.result(timeout=step)
        except FutureTimeoutError:
            continue
