"""
Per-source delivery ordering.

Batches of one source may be transformed in parallel, but they must reach
the sinks in the order they were claimed. Each claim takes a ticket; a
worker holding an emitted batch waits until every earlier ticket of the
same source has been released before pushing to the sinks.
"""

import threading
from collections import defaultdict


class SequenceTracker:
    """
    Ticket-based turn taking, one queue per source.

    Example:
        ticket = tracker.issue("orders")
        ...  # transform the batch
        tracker.wait_turn("orders", ticket)
        ...  # deliver to sinks
        tracker.release("orders", ticket)
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._issued: dict[str, int] = defaultdict(int)
        self._serving: dict[str, int] = defaultdict(int)
        self._released: dict[str, set[int]] = defaultdict(set)

    def issue(self, source_id: str) -> int:
        with self._cond:
            ticket = self._issued[source_id]
            self._issued[source_id] = ticket + 1
            return ticket

    def wait_turn(
        self, source_id: str, ticket: int, timeout: float | None = None
    ) -> bool:
        """Block until ``ticket`` is the oldest unreleased ticket of the source."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._serving[source_id] == ticket, timeout=timeout
            )

    def release(self, source_id: str, ticket: int) -> None:
        """Mark a ticket finished, whether it was delivered, filtered or failed."""
        with self._cond:
            released = self._released[source_id]
            released.add(ticket)
            while self._serving[source_id] in released:
                released.remove(self._serving[source_id])
                self._serving[source_id] += 1
            self._cond.notify_all()

    def outstanding(self, source_id: str) -> int:
        with self._cond:
            return self._issued[source_id] - self._serving[source_id]
