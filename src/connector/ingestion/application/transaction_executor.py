"""Transaction executor for one partition.

Sends each batch as one transaction and drives its state machine:

    PENDING -> SENDING -> COMMITTED
                       -> RETRYING -> SENDING
                       -> FAILED_FATAL

Batches are committed strictly in order; the executor blocks on each
batch before starting the next. A fatal failure stops the partition and
leaves earlier commits in place.
"""

from __future__ import annotations

import threading
import time
from typing import Iterable

from ingestion.application.compiler import CompiledWrite
from ingestion.domain.exceptions import (
    FatalSinkError,
    RetryableSinkError,
    SinkError,
    WriteCancelledError,
)
from ingestion.domain.value_objects import (
    Batch,
    BatchOutcome,
    BatchState,
    PartitionResult,
    RetryPolicy,
    ScriptResult,
)
from ingestion.ports.observability import WriteJobProbe
from ingestion.ports.sink import GraphSinkProtocol


class TransactionExecutor:
    """Commits the batches of one partition against a graph sink.

    Holds no state shared with other partitions; the compiled write and
    script result are read-only, and the cancel event is only read.
    """

    def __init__(
        self,
        sink: GraphSinkProtocol,
        compiled: CompiledWrite,
        policy: RetryPolicy,
        probe: WriteJobProbe,
        script_result: ScriptResult | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self._sink = sink
        self._compiled = compiled
        self._policy = policy
        self._probe = probe
        self._script_result = script_result or ScriptResult.empty()
        self._cancel_event = cancel_event or threading.Event()

    def run(self, partition_id: int, batches: Iterable[Batch]) -> PartitionResult:
        """Commit every batch in order.

        Cancellation is honoured between batches only; a batch already
        being sent finishes first.

        Raises:
            FatalSinkError: When a batch fails fatally; carries the partition,
                batch index and the number of rows committed before it
            WriteCancelledError: When the job is cancelled
        """
        outcomes: list[BatchOutcome] = []
        counters: dict[str, int] = {}
        rows_committed = 0

        for batch in batches:
            if self._cancel_event.is_set():
                raise WriteCancelledError(
                    f"Partition {partition_id} cancelled before batch {batch.index} "
                    f"({rows_committed} rows committed)"
                )
            try:
                outcome, batch_counters = self.commit(batch)
            except FatalSinkError as e:
                e.rows_committed = rows_committed
                raise
            outcomes.append(outcome)
            rows_committed += outcome.rows
            for name, value in batch_counters.items():
                counters[name] = counters.get(name, 0) + value

        result = PartitionResult(
            partition_id=partition_id,
            outcomes=tuple(outcomes),
            counters=counters,
        )
        self._probe.partition_completed(
            batches_committed=result.batches_committed,
            rows_written=result.rows_written,
            retries=result.retries,
        )
        return result

    def commit(self, batch: Batch) -> tuple[BatchOutcome, dict[str, int]]:
        """Send one batch until it commits or fails fatally.

        Returns:
            The COMMITTED outcome and the sink's update counters

        Raises:
            FatalSinkError: On a fatal error code, a sink-reported fatal
                failure, or when retries are exhausted
            WriteCancelledError: When cancelled while waiting to retry
        """
        parameters = self._compiled.parameters(batch, self._script_result)
        history = [BatchState.PENDING]
        attempts = 0

        while True:
            history.append(BatchState.SENDING)
            attempts += 1
            start = time.perf_counter()
            try:
                result = self._sink.execute(self._compiled.text, parameters)
            except SinkError as e:
                retryable = isinstance(e, RetryableSinkError)
                if not retryable or self._policy.is_fatal(e.code):
                    raise self._fail(batch, e, attempts, history) from e
                if attempts > self._policy.max_retries:
                    raise self._fail(batch, e, attempts, history) from e

                history.append(BatchState.RETRYING)
                self._probe.batch_retry_scheduled(
                    batch_index=batch.index,
                    attempt=attempts,
                    code=e.code,
                    error=str(e),
                )
                self._wait_before_retry(batch)
                continue

            history.append(BatchState.COMMITTED)
            self._probe.batch_committed(
                batch_index=batch.index,
                rows=batch.size,
                attempts=attempts,
                duration_ms=(time.perf_counter() - start) * 1000,
            )
            outcome = BatchOutcome(
                partition_id=batch.partition_id,
                batch_index=batch.index,
                state=BatchState.COMMITTED,
                rows=batch.size,
                attempts=attempts,
                retries=attempts - 1,
                history=tuple(history),
            )
            return outcome, result.counters

    def _wait_before_retry(self, batch: Batch) -> None:
        if self._policy.retry_interval <= 0:
            return
        if self._cancel_event.wait(self._policy.retry_interval):
            raise WriteCancelledError(
                f"Partition {batch.partition_id} cancelled while batch "
                f"{batch.index} was waiting to be retried"
            )

    def _fail(
        self,
        batch: Batch,
        error: SinkError,
        attempts: int,
        history: list[BatchState],
    ) -> FatalSinkError:
        history.append(BatchState.FAILED_FATAL)
        self._probe.batch_failed(
            batch_index=batch.index,
            attempts=attempts,
            code=error.code,
            error=str(error),
        )
        return FatalSinkError(
            f"Batch {batch.index} of partition {batch.partition_id} failed after "
            f"{attempts} attempt(s): {error}",
            code=error.code,
            statement=self._compiled.text,
            partition_id=batch.partition_id,
            batch_index=batch.index,
            attempts=attempts,
        )
