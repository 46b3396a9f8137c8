"""
Batches: the unit of scheduling and error isolation.

A batch is an immutable, ordered group of records from one source. Its
records are checked against the batch schema once, at construction, and
never re-checked on access.
"""

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from weir.core.exceptions import BatchError, BatchTooLarge, SchemaViolation
from weir.core.record import Record
from weir.core.schema import Schema


@dataclass(frozen=True)
class Batch:
    """
    Ordered group of records sharing one schema.

    Attributes:
        schema: Schema every record conforms to
        records: The records, in source order
        sequence: Position of the batch within its source (strictly increasing)
        source_id: Identifier of the producing source
        job_id: Owning job, stamped at ingestion
    """

    schema: Schema
    records: tuple[Record, ...]
    sequence: int
    source_id: str
    job_id: UUID | None = field(default=None, compare=False)

    def __post_init__(self):
        if not isinstance(self.records, tuple):
            object.__setattr__(self, "records", tuple(self.records))
        if self.sequence < 0:
            raise ValueError("sequence must be non-negative")
        for record in self.records:
            if not record.schema.is_compatible(self.schema):
                raise SchemaViolation(
                    f"Record schema {record.schema!r} does not match "
                    f"batch schema {self.schema!r}",
                    sequence=self.sequence,
                    source_id=self.source_id,
                    record_count=len(self.records),
                )

    @classmethod
    def from_rows(
        cls,
        schema: Schema,
        rows: Sequence[Mapping[str, Any]],
        sequence: int,
        source_id: str,
        max_records: int | None = None,
    ) -> "Batch":
        """
        Build a batch from plain mappings, validating every row.

        Any invalid row fails the whole batch.

        Raises:
            SchemaViolation: A row does not conform, or the batch is too large
        """
        if max_records is not None and len(rows) > max_records:
            raise BatchTooLarge(
                f"Batch of {len(rows)} records exceeds limit of {max_records}",
                sequence=sequence,
                source_id=source_id,
                record_count=len(rows),
            )
        records = []
        for position, row in enumerate(rows):
            try:
                records.append(Record(schema, row))
            except BatchError as e:
                raise SchemaViolation(
                    f"Row {position}: {e.message}",
                    sequence=sequence,
                    source_id=source_id,
                    record_count=len(rows),
                ) from e
        return cls(schema, tuple(records), sequence, source_id)

    def derive(
        self, records: Iterable[Record], schema: Schema | None = None
    ) -> "Batch":
        """Successor batch with the same identity and new contents."""
        return Batch(
            schema=schema or self.schema,
            records=tuple(records),
            sequence=self.sequence,
            source_id=self.source_id,
            job_id=self.job_id,
        )

    def with_job(self, job_id: UUID) -> "Batch":
        return Batch(self.schema, self.records, self.sequence, self.source_id, job_id)

    def to_rows(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.records]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __repr__(self) -> str:
        return (
            f"Batch(source_id={self.source_id!r}, sequence={self.sequence}, "
            f"records={len(self.records)})"
        )
