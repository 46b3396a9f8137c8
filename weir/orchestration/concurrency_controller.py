"""
Concurrency controller for running jobs.

Caps how many jobs execute at once. Jobs waiting for a slot stay PENDING
and can be cancelled while they wait.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ConcurrencyController:
    """
    Semaphore-based limit on concurrently running jobs.

    Example:
        controller = ConcurrencyController(max_concurrent=2)

        with controller.slot() as acquired:
            if acquired:
                scheduler.run()
    """

    def __init__(self, max_concurrent: int | None = None, poll_interval: float = 0.05):
        """
        Initialize concurrency controller.

        Args:
            max_concurrent: Maximum running jobs, or None for no limit
            poll_interval: How often a waiting job re-checks its cancel flag
        """
        if max_concurrent is not None and max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max_concurrent = max_concurrent
        self._semaphore = (
            threading.BoundedSemaphore(max_concurrent) if max_concurrent else None
        )
        self._poll_interval = poll_interval

    @property
    def max_concurrent(self) -> int | None:
        return self._max_concurrent

    def acquire(self, cancelled: threading.Event | None = None) -> bool:
        """
        Wait for a slot.

        Returns:
            False if ``cancelled`` was set before a slot became free
        """
        if self._semaphore is None:
            return not (cancelled and cancelled.is_set())
        while not self._semaphore.acquire(timeout=self._poll_interval):
            if cancelled is not None and cancelled.is_set():
                return False
        if cancelled is not None and cancelled.is_set():
            self._semaphore.release()
            return False
        return True

    def release(self) -> None:
        if self._semaphore is not None:
            self._semaphore.release()

    @contextmanager
    def slot(self, cancelled: threading.Event | None = None) -> Iterator[bool]:
        """Hold a slot for the duration of the block, if one was acquired."""
        acquired = self.acquire(cancelled)
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    def __repr__(self) -> str:
        return f"ConcurrencyController(max_concurrent={self._max_concurrent})"
