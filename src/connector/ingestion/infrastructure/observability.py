"""Probes for graph sink observability.

These probes capture database-level events of sink adapters, following
the Domain Oriented Observability pattern.
"""

from __future__ import annotations

from typing import Protocol

import structlog


class GraphSinkProbe(Protocol):
    """Domain probe for graph sink observability."""

    def sink_connected(self, uri: str, database: str | None) -> None:
        """Record that the driver was created and connectivity verified."""
        ...

    def statement_failed(
        self, statement: str, code: str | None, error: Exception
    ) -> None:
        """Record that a statement failed in the database."""
        ...


class DefaultGraphSinkProbe:
    """Default implementation of GraphSinkProbe using structlog."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._logger = logger or structlog.get_logger()

    def sink_connected(self, uri: str, database: str | None) -> None:
        self._logger.info("graph_sink_connected", uri=uri, database=database)

    def statement_failed(
        self, statement: str, code: str | None, error: Exception
    ) -> None:
        self._logger.error(
            "graph_statement_failed",
            statement=statement,
            code=code,
            error=str(error),
        )
