"""Ingestion domain module.

Contains value objects, the statement IR and the pure mapping functions
of the ingestion bounded context.
"""

from ingestion.domain.value_objects import (
    Batch,
    BatchOutcome,
    BatchState,
    KeyMapping,
    NodeSpec,
    NodeTarget,
    RawQueryTarget,
    RelationshipSpec,
    RelationshipTarget,
    RetryPolicy,
    SaveMode,
    ScriptResult,
    TableSchema,
    WriteResult,
    WriteTarget,
)

__all__ = [
    "Batch",
    "BatchOutcome",
    "BatchState",
    "KeyMapping",
    "NodeSpec",
    "NodeTarget",
    "RawQueryTarget",
    "RelationshipSpec",
    "RelationshipTarget",
    "RetryPolicy",
    "SaveMode",
    "ScriptResult",
    "TableSchema",
    "WriteResult",
    "WriteTarget",
]
