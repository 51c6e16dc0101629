"""Graph sink protocol for the ingestion bounded context.

The sink is the only component that talks to the graph database. Adapters
translate driver failures into ``RetryableSinkError`` / ``FatalSinkError``
so the transaction executor can apply its retry policy without knowing the
driver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol


@dataclass(frozen=True)
class SinkResult:
    """Outcome of a committed statement.

    Attributes:
        counters: Update counters reported by the database
            (e.g. {"nodes_created": 10, "properties_set": 40})
    """

    counters: dict[str, int] = field(default_factory=dict)


class GraphSinkProtocol(Protocol):
    """Protocol for executing write statements against a graph database."""

    def execute(self, statement: str, parameters: Mapping[str, Any]) -> SinkResult:
        """Execute a parameterized statement in its own transaction.

        The transaction is committed before returning; on failure nothing
        of the statement is persisted.

        Args:
            statement: Cypher statement text
            parameters: Statement parameters

        Returns:
            SinkResult with the update counters of the transaction

        Raises:
            RetryableSinkError: If re-sending the statement may succeed
            FatalSinkError: If the failure is not recoverable
        """
        ...

    def execute_once(self, statement: str) -> list[dict[str, Any]]:
        """Execute a script or schema statement and return its result rows.

        Raises:
            SinkError: If execution fails
        """
        ...
