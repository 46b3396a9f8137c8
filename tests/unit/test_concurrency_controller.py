"""Tests for ConcurrencyController."""

import threading
import time

import pytest

from weir.orchestration import ConcurrencyController


class TestConcurrencyController:
    """Test ConcurrencyController functionality."""

    def test_init_with_valid_concurrency(self):
        controller = ConcurrencyController(max_concurrent=5)
        assert controller.max_concurrent == 5

    def test_init_with_invalid_concurrency(self):
        """Test initialization with invalid concurrency raises error."""
        with pytest.raises(ValueError, match="max_concurrent must be at least 1"):
            ConcurrencyController(max_concurrent=0)

    def test_slot_respects_concurrency_limit(self):
        """Never more than max_concurrent holders at once."""
        controller = ConcurrencyController(max_concurrent=2, poll_interval=0.01)
        lock = threading.Lock()
        active = 0
        peak = 0

        def task():
            nonlocal active, peak
            with controller.slot() as acquired:
                assert acquired
                with lock:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.02)
                with lock:
                    active -= 1

        threads = [threading.Thread(target=task) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert peak <= 2

    def test_slot_released_on_exception(self):
        controller = ConcurrencyController(max_concurrent=1)
        with pytest.raises(ValueError):
            with controller.slot():
                raise ValueError("boom")
        assert controller.acquire()

    def test_cancelled_while_waiting(self):
        """A waiter whose cancel flag is set gives up its place."""
        controller = ConcurrencyController(max_concurrent=1, poll_interval=0.01)
        assert controller.acquire()
        cancelled = threading.Event()
        threading.Timer(0.05, cancelled.set).start()
        assert controller.acquire(cancelled) is False

    def test_unlimited(self):
        controller = ConcurrencyController()
        assert all(controller.acquire() for _ in range(100))
        cancelled = threading.Event()
        cancelled.set()
        assert controller.acquire(cancelled) is False
