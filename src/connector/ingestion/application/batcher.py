"""Fixed-size batching of shaped rows."""

from __future__ import annotations

from itertools import islice
from typing import Any, Iterable, Iterator

from ingestion.domain.value_objects import Batch


def batch_rows(
    rows: Iterable[dict[str, Any]],
    batch_size: int,
    partition_id: int = 0,
) -> Iterator[Batch]:
    """Group rows into batches of ``batch_size``, lazily and in input order.

    The last batch holds the remainder and may be shorter. No row is
    dropped or reordered; an empty input yields no batches.

    Args:
        rows: Shaped rows of one partition
        batch_size: Maximum rows per batch (>= 1)
        partition_id: Partition the batches belong to

    Raises:
        ValueError: If batch_size is smaller than 1
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    iterator = iter(rows)
    index = 0
    while True:
        chunk = tuple(islice(iterator, batch_size))
        if not chunk:
            return
        yield Batch(partition_id=partition_id, index=index, rows=chunk)
        index += 1
