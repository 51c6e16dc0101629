"""Observability protocols for the ingestion bounded context.

Defines protocols for domain probes that are implemented by infrastructure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class WriteJobProbe(Protocol):
    """Domain probe for write job observability.

    Captures domain-significant events of a write job: preparation,
    batch commits, retries and job completion.
    """

    def write_job_planned(self, target: str, statement: str) -> None:
        """Record that options were validated and the statement compiled."""
        ...

    def script_statement_executed(
        self, statement_index: int, result_count: int
    ) -> None:
        """Record that a preparatory script statement ran."""
        ...

    def schema_statement_executed(self, statement: str) -> None:
        """Record that an index, constraint or schema query ran."""
        ...

    def batch_committed(
        self, batch_index: int, rows: int, attempts: int, duration_ms: float
    ) -> None:
        """Record that a batch was committed."""
        ...

    def batch_retry_scheduled(
        self, batch_index: int, attempt: int, code: str | None, error: str
    ) -> None:
        """Record that a batch failed with a retryable error and will be re-sent."""
        ...

    def batch_failed(
        self, batch_index: int, attempts: int, code: str | None, error: str
    ) -> None:
        """Record that a batch failed fatally."""
        ...

    def partition_completed(
        self, batches_committed: int, rows_written: int, retries: int
    ) -> None:
        """Record that every batch of a partition was committed."""
        ...

    def write_job_completed(
        self, partitions: int, batches_committed: int, rows_written: int
    ) -> None:
        """Record that the write job finished successfully."""
        ...

    def write_job_failed(self, error: Exception) -> None:
        """Record that the write job was aborted by an error."""
        ...

    def write_job_cancelled(self) -> None:
        """Record that the write job was cancelled."""
        ...

    def with_context(self, context: ObservationContext) -> WriteJobProbe:
        """Create a new probe with observation context bound."""
        ...
