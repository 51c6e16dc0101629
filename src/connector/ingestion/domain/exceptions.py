"""Exceptions for the ingestion bounded context.

Plan-time errors (configuration, schema) are raised before any I/O.
Sink errors are raised by graph sink adapters and enriched with batch
context by the transaction executor.
"""

from __future__ import annotations


class WriteError(Exception):
    """Base exception for write-path failures."""

    pass


class ConfigurationError(WriteError):
    """Raised when write options are missing, inconsistent or malformed."""

    pass


class MalformedMappingError(ConfigurationError):
    """Raised when a "column:property" mapping string cannot be parsed."""

    def __init__(self, message: str, mapping: str | None = None):
        super().__init__(message)
        self.mapping = mapping


class SchemaMismatchError(WriteError):
    """Raised when the row schema lacks columns a write strategy requires."""

    pass


class MissingColumnError(WriteError):
    """Raised when a configured mapping references an unknown column."""

    def __init__(self, column: str, available: list[str] | None = None):
        message = f"Column '{column}' is not present in the row schema"
        if available is not None:
            message += f" (available: {', '.join(sorted(available))})"
        super().__init__(message)
        self.column = column


class SinkError(WriteError):
    """Base exception for failures reported by a graph sink.

    Attributes:
        code: Database error code (e.g. "Neo.TransientError.Transaction.DeadlockDetected")
    """

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class RetryableSinkError(SinkError):
    """Raised by a sink when the failed statement may succeed if re-sent."""

    pass


class FatalSinkError(SinkError):
    """Raised when a batch cannot be committed and the partition must stop.

    Sinks raise it directly for non-recoverable failures; the transaction
    executor raises it with batch context when a fatal code is seen or
    retries are exhausted. Batches committed before it was raised stay
    persisted.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        statement: str | None = None,
        partition_id: int | None = None,
        batch_index: int | None = None,
        attempts: int = 0,
        rows_committed: int = 0,
    ):
        super().__init__(message, code=code)
        self.statement = statement
        self.partition_id = partition_id
        self.batch_index = batch_index
        self.attempts = attempts
        self.rows_committed = rows_committed


class PreparationError(WriteError):
    """Base exception for failures of statements run once before ingestion."""

    def __init__(
        self,
        message: str,
        statement: str,
        statement_index: int,
        code: str | None = None,
    ):
        super().__init__(message)
        self.statement = statement
        self.statement_index = statement_index
        self.code = code


class ScriptExecutionError(PreparationError):
    """Raised when a preparatory script statement fails."""

    pass


class SchemaOptimizationError(PreparationError):
    """Raised when an index, constraint or schema query fails."""

    pass


class WriteCancelledError(WriteError):
    """Raised when a write job is cancelled before all batches were sent."""

    pass
