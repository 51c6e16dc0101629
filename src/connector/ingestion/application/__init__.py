"""Ingestion application layer: compiling, preparing and committing writes."""

from ingestion.application.compiler import CompiledWrite, QueryCompiler
from ingestion.application.options import WriteOptions
from ingestion.application.write_job import Partition, WriteJob, WritePlan, plan_write

__all__ = [
    "CompiledWrite",
    "Partition",
    "QueryCompiler",
    "WriteJob",
    "WriteOptions",
    "WritePlan",
    "plan_write",
]
