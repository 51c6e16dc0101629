"""Default implementation of the write job probe.

Provides a structlog-based implementation of the WriteJobProbe protocol
for observability at the use-case level.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from ingestion.ports.observability import WriteJobProbe

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class DefaultWriteJobProbe(WriteJobProbe):
    """Default implementation of WriteJobProbe using structlog.

    Supports observation context so that every event of a partition
    carries the job and partition identifiers.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultWriteJobProbe:
        return DefaultWriteJobProbe(logger=self._logger, context=context)

    def write_job_planned(self, target: str, statement: str) -> None:
        self._logger.info(
            "write_job_planned",
            target_kind=target,
            statement=statement,
            **self._get_context_kwargs(),
        )

    def script_statement_executed(
        self, statement_index: int, result_count: int
    ) -> None:
        self._logger.info(
            "script_statement_executed",
            statement_index=statement_index,
            result_count=result_count,
            **self._get_context_kwargs(),
        )

    def schema_statement_executed(self, statement: str) -> None:
        self._logger.info(
            "schema_statement_executed",
            statement=statement,
            **self._get_context_kwargs(),
        )

    def batch_committed(
        self, batch_index: int, rows: int, attempts: int, duration_ms: float
    ) -> None:
        self._logger.debug(
            "batch_committed",
            batch_index=batch_index,
            rows=rows,
            attempts=attempts,
            duration_ms=duration_ms,
            **self._get_context_kwargs(),
        )

    def batch_retry_scheduled(
        self, batch_index: int, attempt: int, code: str | None, error: str
    ) -> None:
        self._logger.warning(
            "batch_retry_scheduled",
            batch_index=batch_index,
            attempt=attempt,
            code=code,
            error=error,
            **self._get_context_kwargs(),
        )

    def batch_failed(
        self, batch_index: int, attempts: int, code: str | None, error: str
    ) -> None:
        self._logger.error(
            "batch_failed",
            batch_index=batch_index,
            attempts=attempts,
            code=code,
            error=error,
            **self._get_context_kwargs(),
        )

    def partition_completed(
        self, batches_committed: int, rows_written: int, retries: int
    ) -> None:
        self._logger.info(
            "partition_completed",
            batches_committed=batches_committed,
            rows_written=rows_written,
            retries=retries,
            **self._get_context_kwargs(),
        )

    def write_job_completed(
        self, partitions: int, batches_committed: int, rows_written: int
    ) -> None:
        self._logger.info(
            "write_job_completed",
            partitions=partitions,
            batches_committed=batches_committed,
            rows_written=rows_written,
            **self._get_context_kwargs(),
        )

    def write_job_failed(self, error: Exception) -> None:
        self._logger.error(
            "write_job_failed",
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def write_job_cancelled(self) -> None:
        self._logger.warning(
            "write_job_cancelled",
            **self._get_context_kwargs(),
        )
