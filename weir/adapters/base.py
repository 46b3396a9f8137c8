"""
Source and sink adapter interfaces.

Adapters sit at the boundary of the engine: sources produce batches with
strictly increasing sequence numbers, sinks persist them. Both report
failures as ``AdapterError`` (with a ``transient`` flag) so the scheduler
can decide between retrying and failing the job. A source may also raise
a per-batch ``SchemaViolation`` for data it cannot decode; the sequence
number is consumed and the stream continues.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from weir.core.batch import Batch
from weir.core.exceptions import AdapterError, BatchError
from weir.core.schema import Schema
from weir.utils.logging_utils import get_logger


class _EndOfStream:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_STREAM"

    def __bool__(self) -> bool:
        return False


END_OF_STREAM: Final = _EndOfStream()


@dataclass(frozen=True)
class Ack:
    """Confirmation that a sink persisted a batch."""

    sink_id: str
    source_id: str
    sequence: int
    records: int
    duplicate: bool = False


class SourceAdapter(ABC):
    """Produces batches for one source."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        self.logger = get_logger(f"{__name__}.{type(self).__name__}")

    @property
    @abstractmethod
    def schema(self) -> Schema:
        """Schema of every batch this source produces."""

    @abstractmethod
    def next_batch(self) -> Batch | _EndOfStream:
        """
        Return the next batch, or ``END_OF_STREAM`` when exhausted.

        Raises:
            AdapterError: The source could not be read
            SchemaViolation: The next batch could not be decoded
        """

    def close(self) -> None:
        """Release resources. Safe to call more than once."""

    def __enter__(self) -> "SourceAdapter":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source_id={self.source_id!r})"


class ChunkedSource(SourceAdapter):
    """
    Source that reads raw rows in chunks and decodes them into batches.

    Subclasses implement ``_read_chunk`` (raw rows, empty when exhausted)
    and optionally ``_decode`` (raw row to typed mapping).
    """

    def __init__(
        self,
        source_id: str,
        batch_size: int = 1000,
        max_batch_size: int | None = None,
    ):
        super().__init__(source_id)
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.max_batch_size = max_batch_size
        self._sequence = 0
        self._exhausted = False

    @abstractmethod
    def _read_chunk(self, size: int) -> list[Any]:
        """Read up to ``size`` raw rows."""

    def _decode(self, raw: Any) -> Mapping[str, Any]:
        return raw

    def next_batch(self) -> Batch | _EndOfStream:
        if self._exhausted:
            return END_OF_STREAM
        try:
            raw_rows = self._read_chunk(self.batch_size)
        except OSError as e:
            raise AdapterError(
                f"Failed reading {self.source_id}: {e}", adapter_id=self.source_id
            ) from e
        if not raw_rows:
            self._exhausted = True
            return END_OF_STREAM

        sequence = self._sequence
        self._sequence += 1
        try:
            rows = [self._decode(raw) for raw in raw_rows]
        except BatchError as e:
            e.bind(sequence, self.source_id, len(raw_rows))
            raise
        return Batch.from_rows(
            self.schema, rows, sequence, self.source_id, self.max_batch_size
        )


class SinkAdapter(ABC):
    """
    Persists batches.

    ``write`` is called from a single writer thread per sink. Writes are
    idempotent per (source_id, sequence): a redelivered batch is
    acknowledged without being written twice.
    """

    def __init__(self, sink_id: str):
        self.sink_id = sink_id
        self.logger = get_logger(f"{__name__}.{type(self).__name__}")
        self._lock = threading.Lock()
        self._delivered: set[tuple[str, int]] = set()
        self._batches_written = 0
        self._records_written = 0
        self._closed = False

    def write(self, batch: Batch) -> Ack:
        """
        Persist one batch.

        Raises:
            AdapterError: The write failed
        """
        key = (batch.source_id, batch.sequence)
        with self._lock:
            if self._closed:
                raise AdapterError(
                    f"Sink {self.sink_id} is closed", adapter_id=self.sink_id
                )
            if key in self._delivered:
                return Ack(
                    self.sink_id, batch.source_id, batch.sequence, 0, duplicate=True
                )
            try:
                self._write(batch)
            except OSError as e:
                raise AdapterError(
                    f"Failed writing to {self.sink_id}: {e}", adapter_id=self.sink_id
                ) from e
            self._delivered.add(key)
            self._batches_written += 1
            self._records_written += len(batch)
        return Ack(self.sink_id, batch.source_id, batch.sequence, len(batch))

    @abstractmethod
    def _write(self, batch: Batch) -> None:
        """Format-specific write of one batch."""

    def _finalize(self) -> dict[str, Any]:
        """Format-specific flush; returns extra statistics."""
        return {}

    def close(self) -> dict[str, Any]:
        """
        Flush and release the sink.

        Returns:
            Dict with write statistics
        """
        with self._lock:
            if self._closed:
                return self._stats()
            extra = self._finalize()
            self._closed = True
        stats = {**self._stats(), **extra}
        self.logger.info(
            f"Closed sink {self.sink_id}: {self._records_written} records in "
            f"{self._batches_written} batches"
        )
        return stats

    def _stats(self) -> dict[str, Any]:
        return {
            "sink_id": self.sink_id,
            "batches_written": self._batches_written,
            "records_written": self._records_written,
        }

    @property
    def records_written(self) -> int:
        return self._records_written

    @property
    def batches_written(self) -> int:
        return self._batches_written

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(sink_id={self.sink_id!r}, "
            f"records={self._records_written})"
        )
