"""
Bounded intakes between adapters and workers.

``SourceIntake`` runs a reader thread that pulls batches from a source
adapter into a bounded queue; a full queue blocks the reader, which is how
backpressure reaches the source. ``SinkIntake`` is the mirror image: a
bounded channel drained by a writer thread. A sink slot stays occupied
until its write completes, so a stalled sink holds at most ``capacity``
batches and blocks every further producer.
"""

import threading
from collections import deque
from collections.abc import Callable
from uuid import UUID

from weir.adapters.base import END_OF_STREAM, SinkAdapter, SourceAdapter
from weir.core.batch import Batch
from weir.core.exceptions import AdapterError, BatchError, BatchTooLarge
from weir.utils.logging_utils import get_logger
from weir.utils.retry_handler import RetryHandler

logger = get_logger(__name__)


class SourceIntake:
    """
    Reader thread plus bounded queue for one source.

    All queue state is guarded by the scheduler's condition, which is
    shared with the workers so one notification wakes both sides.
    """

    def __init__(
        self,
        adapter: SourceAdapter,
        capacity: int,
        cond: threading.Condition,
        job_id: UUID,
        retry: RetryHandler,
        on_batch_error: Callable[[BatchError], None],
        on_fatal: Callable[[BaseException], None],
        max_batch_size: int | None = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.adapter = adapter
        self.source_id = adapter.source_id
        self.capacity = capacity
        self.job_id = job_id
        self.retry = retry
        self.max_batch_size = max_batch_size
        self._cond = cond
        self._on_batch_error = on_batch_error
        self._on_fatal = on_fatal

        # Guarded by the shared condition
        self.queue: deque[Batch] = deque()
        self.exhausted = False
        self.in_flight = 0
        self.flushed = False
        self.last_sequence = -1
        self._stopped = False

        self.batches_read = 0
        self._thread = threading.Thread(
            target=self._run, name=f"weir-source-{self.source_id}", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        """Ask the reader to stop; caller holds the shared condition."""
        self._stopped = True

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    @property
    def drained(self) -> bool:
        """Exhausted with nothing queued or in flight; caller holds the condition."""
        return self.exhausted and not self.queue and self.in_flight == 0

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(
                    lambda: self._stopped or len(self.queue) < self.capacity
                )
                if self._stopped:
                    return

            try:
                item = self.retry.execute(
                    self.adapter.next_batch, description=f"source {self.source_id}"
                )
            except BatchError as e:
                self._track_sequence(e.sequence)
                logger.warning(
                    f"Source {self.source_id} produced an invalid batch "
                    f"#{e.sequence}: {e}"
                )
                self._on_batch_error(e)
                continue
            except Exception as e:
                self._fail(e)
                return

            if item is END_OF_STREAM:
                with self._cond:
                    self.exhausted = True
                    self._cond.notify_all()
                logger.debug(
                    f"Source {self.source_id} exhausted after "
                    f"{self.batches_read} batches"
                )
                return

            if item.sequence <= self.last_sequence or item.source_id != self.source_id:
                self._fail(
                    AdapterError(
                        f"Source {self.source_id} broke ordering: batch "
                        f"{item.source_id}#{item.sequence} after #{self.last_sequence}",
                        adapter_id=self.source_id,
                    )
                )
                return
            self._track_sequence(item.sequence)

            if self.max_batch_size is not None and len(item) > self.max_batch_size:
                self._on_batch_error(
                    BatchTooLarge(
                        f"Batch of {len(item)} records exceeds limit of "
                        f"{self.max_batch_size}",
                        sequence=item.sequence,
                        source_id=self.source_id,
                        record_count=len(item),
                    )
                )
                continue

            with self._cond:
                self.queue.append(item.with_job(self.job_id))
                self.batches_read += 1
                self._cond.notify_all()

    def _track_sequence(self, sequence: int | None) -> None:
        if sequence is not None and sequence > self.last_sequence:
            self.last_sequence = sequence

    def _fail(self, error: BaseException) -> None:
        logger.error(f"Source {self.source_id} failed: {error}")
        with self._cond:
            self.exhausted = True
            self._cond.notify_all()
        self._on_fatal(error)


class SinkIntake:
    """
    Bounded channel and writer thread for one sink.

    ``put`` blocks while ``capacity`` batches are queued or being written.
    Once the writer hits an unrecoverable error the intake is broken:
    pending and future ``put`` calls raise that error.
    """

    def __init__(
        self,
        adapter: SinkAdapter,
        capacity: int,
        retry: RetryHandler,
        on_fatal: Callable[[BaseException], None],
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.adapter = adapter
        self.sink_id = adapter.sink_id
        self.capacity = capacity
        self.retry = retry
        self._on_fatal = on_fatal

        self._cond = threading.Condition()
        self._queue: deque[Batch] = deque()
        self._occupied = 0
        self._closing = False
        self.error: BaseException | None = None
        self.peak_occupied = 0
        self.batches_written = 0
        self._thread = threading.Thread(
            target=self._run, name=f"weir-sink-{self.sink_id}", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    @property
    def occupied(self) -> int:
        with self._cond:
            return self._occupied

    def put(self, batch: Batch) -> None:
        """
        Enqueue a batch, blocking while the channel is full.

        Raises:
            AdapterError: The writer has broken down
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self.error is not None or self._occupied < self.capacity
            )
            if self.error is not None:
                raise AdapterError(
                    f"Sink {self.sink_id} is unavailable: {self.error}",
                    adapter_id=self.sink_id,
                ) from self.error
            self._queue.append(batch)
            self._occupied += 1
            self.peak_occupied = max(self.peak_occupied, self._occupied)
            self._cond.notify_all()

    def close(self, timeout: float | None = None) -> None:
        """Let the writer drain the queue, then stop it."""
        with self._cond:
            self._closing = True
            self._cond.notify_all()
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._queue or self._closing)
                if not self._queue:
                    return
                batch = self._queue[0]

            try:
                self.retry.execute(
                    lambda: self.adapter.write(batch),
                    description=f"sink {self.sink_id}",
                )
            except Exception as e:
                logger.error(f"Sink {self.sink_id} failed: {e}")
                with self._cond:
                    self.error = e
                    self._queue.clear()
                    self._occupied = 0
                    self._cond.notify_all()
                self._on_fatal(e)
                return

            with self._cond:
                self._queue.popleft()
                self._occupied -= 1
                self.batches_written += 1
                self._cond.notify_all()
