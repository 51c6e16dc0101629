"""Preparatory script execution.

The script runs once per job before any batch is sent. Only the rows of
its last statement are kept; they are bound as ``scriptResult`` in every
batch statement.
"""

from __future__ import annotations

from ingestion.domain.exceptions import ScriptExecutionError, SinkError
from ingestion.domain.value_objects import ScriptResult
from ingestion.ports.observability import WriteJobProbe
from ingestion.ports.sink import GraphSinkProtocol


class ScriptRunner:
    """Runs the ``script`` statements of a write job in order."""

    def __init__(self, sink: GraphSinkProtocol, probe: WriteJobProbe):
        self._sink = sink
        self._probe = probe

    def run(self, statements: list[str]) -> ScriptResult:
        """Execute the statements and keep the result rows of the last one.

        Args:
            statements: Statements already split on ';' with blanks removed

        Returns:
            ScriptResult of the last statement, empty if there are none

        Raises:
            ScriptExecutionError: If any statement fails
        """
        rows: list[dict] = []
        for index, statement in enumerate(statements):
            try:
                rows = self._sink.execute_once(statement)
            except SinkError as e:
                raise ScriptExecutionError(
                    f"Script statement {index} failed: {e}",
                    statement=statement,
                    statement_index=index,
                    code=e.code,
                ) from e
            self._probe.script_statement_executed(
                statement_index=index, result_count=len(rows)
            )

        return ScriptResult(rows=tuple(dict(row) for row in rows))
