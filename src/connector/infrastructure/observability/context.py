"""Observation context for domain-oriented observability.

Observation contexts collect and manage contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Captures job-scoped metadata that should be included with all
    instrumentation events, so that log lines from concurrently written
    partitions can be told apart.

    Attributes:
        job_id: Unique identifier for the write job.
        partition_id: Partition being written (if applicable).
        target: Kind of write target ("query", "node", "relationship").
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(job_id="job-123", target="node")
        probe = DefaultWriteJobProbe().with_context(context.with_partition(2))
    """

    job_id: str | None = None
    partition_id: int | None = None
    target: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.job_id is not None:
            result["job_id"] = self.job_id
        if self.partition_id is not None:
            result["partition_id"] = self.partition_id
        if self.target is not None:
            result["target"] = self.target
        result.update(self.extra)
        return result

    def with_partition(self, partition_id: int) -> ObservationContext:
        """Create a new context scoped to one partition."""
        return replace(self, partition_id=partition_id)

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return replace(self, extra={**self.extra, **kwargs})
