"""Write job orchestration.

A job is planned once (options validated, statement compiled, mappings
checked against the schema) without any I/O. Running it executes the
script and schema optimization once, then writes every partition
independently on a thread pool.

Partition failures are fail-fast across the job: the first fatal error
cancels sibling partitions between batches and is raised to the caller.
Batches committed before that point stay persisted.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from infrastructure.observability.context import ObservationContext
from infrastructure.settings import WriterSettings, get_writer_settings
from ingestion.application.batcher import batch_rows
from ingestion.application.compiler import CompiledWrite, QueryCompiler
from ingestion.application.observability import DefaultWriteJobProbe
from ingestion.application.options import WriteOptions
from ingestion.application.schema_optimizer import SchemaOptimizer
from ingestion.application.script_runner import ScriptRunner
from ingestion.application.transaction_executor import TransactionExecutor
from ingestion.domain.exceptions import WriteCancelledError, WriteError
from ingestion.domain.mapping import flatten
from ingestion.domain.value_objects import (
    PartitionResult,
    RetryPolicy,
    Row,
    SaveMode,
    ScriptResult,
    TableSchema,
    WriteResult,
    WriteTarget,
)
from ingestion.ports.observability import WriteJobProbe
from ingestion.ports.sink import GraphSinkProtocol


@dataclass(frozen=True)
class Partition:
    """One partition of the row stream."""

    partition_id: int
    rows: Iterable[Row]


@dataclass(frozen=True)
class WritePlan:
    """Everything decided before the first statement is sent."""

    options: WriteOptions
    target: WriteTarget
    schema: TableSchema
    compiled: CompiledWrite

    @property
    def retry_policy(self) -> RetryPolicy:
        return self.options.retry_policy()


@dataclass(frozen=True)
class PartitionContext:
    """Read-only job state handed to each partition."""

    partition_id: int
    compiled: CompiledWrite
    script_result: ScriptResult
    policy: RetryPolicy
    batch_size: int
    cancel_event: threading.Event
    probe: WriteJobProbe


def plan_write(
    options: Mapping[str, Any],
    schema: TableSchema,
    save_mode: str | SaveMode = "ErrorIfExists",
    settings: WriterSettings | None = None,
    compiler: QueryCompiler | None = None,
) -> WritePlan:
    """Validate options and compile the write statement.

    Raises:
        ConfigurationError: If options are missing or malformed
        SchemaMismatchError: If the schema lacks required reserved columns
        MissingColumnError: If a mapping references an unknown column
    """
    write_options = WriteOptions.from_options(options, settings)
    target = write_options.build_target(save_mode)
    compiled = (compiler or QueryCompiler()).compile(target, schema)
    return WritePlan(
        options=write_options,
        target=target,
        schema=schema,
        compiled=compiled,
    )


def write_partition(
    sink: GraphSinkProtocol,
    context: PartitionContext,
    rows: Iterable[Row],
) -> PartitionResult:
    """Flatten, shape, batch and commit the rows of one partition."""
    if context.cancel_event.is_set():
        raise WriteCancelledError(
            f"Partition {context.partition_id} cancelled before it started"
        )
    shaped = (context.compiled.shape(flatten(row)) for row in rows)
    executor = TransactionExecutor(
        sink=sink,
        compiled=context.compiled,
        policy=context.policy,
        probe=context.probe,
        script_result=context.script_result,
        cancel_event=context.cancel_event,
    )
    return executor.run(
        context.partition_id,
        batch_rows(shaped, context.batch_size, context.partition_id),
    )


class WriteJob:
    """Runs a planned write against a graph sink.

    Example:
        plan = plan_write({"labels": ":Person", "node.keys": "id"}, schema, "Overwrite")
        result = WriteJob(plan, sink).run([Partition(0, rows)])
    """

    def __init__(
        self,
        plan: WritePlan,
        sink: GraphSinkProtocol,
        probe: WriteJobProbe | None = None,
        settings: WriterSettings | None = None,
        job_id: str | None = None,
    ):
        self._plan = plan
        self._sink = sink
        self._settings = settings or get_writer_settings()
        self._context = ObservationContext(
            job_id=job_id or uuid.uuid4().hex[:16],
            target=plan.target.kind,
        ).with_extra(
            batch_size=plan.options.batch_size,
            max_retries=plan.options.transaction_retries,
        )
        self._probe = (probe or DefaultWriteJobProbe()).with_context(self._context)
        self._cancel_event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop sending batches; in-flight batches finish first."""
        self._cancel_event.set()

    def run(self, partitions: Iterable[Partition]) -> WriteResult:
        """Prepare the database once, then write every partition.

        Raises:
            ScriptExecutionError: If the preparatory script fails
            SchemaOptimizationError: If a schema statement fails
            FatalSinkError: If a batch fails fatally in any partition
            WriteCancelledError: If the job is cancelled
        """
        self._probe.write_job_planned(self._plan.target.kind, self._plan.compiled.text)
        try:
            script_result = self._prepare()
            results = self._write_partitions(partitions, script_result)
        except WriteCancelledError:
            self._probe.write_job_cancelled()
            raise
        except WriteError as e:
            self._probe.write_job_failed(e)
            raise

        result = WriteResult(
            partitions=tuple(sorted(results, key=lambda r: r.partition_id)),
            script_result=script_result,
        )
        self._probe.write_job_completed(
            partitions=len(result.partitions),
            batches_committed=result.batches_committed,
            rows_written=result.rows_written,
        )
        return result

    def _prepare(self) -> ScriptResult:
        options = self._plan.options
        script_result = ScriptRunner(self._sink, self._probe).run(
            options.script_statements()
        )
        SchemaOptimizer(self._sink, self._probe).run(
            self._plan.target,
            options.schema_optimization_type,
            options.schema_queries(),
        )
        if self.cancelled:
            raise WriteCancelledError("Write job cancelled before ingestion started")
        return script_result

    def _write_partitions(
        self,
        partitions: Iterable[Partition],
        script_result: ScriptResult,
    ) -> list[PartitionResult]:
        policy = self._plan.retry_policy
        errors: list[Exception] = []
        results: list[PartitionResult] = []

        with ThreadPoolExecutor(max_workers=self._settings.max_workers) as pool:
            futures: list[Future[PartitionResult]] = []
            for partition in partitions:
                context = PartitionContext(
                    partition_id=partition.partition_id,
                    compiled=self._plan.compiled,
                    script_result=script_result,
                    policy=policy,
                    batch_size=self._plan.options.batch_size,
                    cancel_event=self._cancel_event,
                    probe=self._probe.with_context(
                        self._context.with_partition(partition.partition_id)
                    ),
                )
                futures.append(
                    pool.submit(write_partition, self._sink, context, partition.rows)
                )

            for future in as_completed(futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    # Fail fast: siblings stop between batches
                    self._cancel_event.set()
                    errors.append(e)

        if errors:
            fatal = [e for e in errors if not isinstance(e, WriteCancelledError)]
            raise (fatal or errors)[0]
        return results
