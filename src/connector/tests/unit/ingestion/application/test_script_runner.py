"""Unit tests for ScriptRunner."""

import pytest

from ingestion.application.script_runner import ScriptRunner
from ingestion.domain.exceptions import FatalSinkError, ScriptExecutionError


class TestScriptRunner:
    """Tests for ScriptRunner.run."""

    def test_keeps_rows_of_last_statement(self, make_sink, mock_probe):
        sink = make_sink(
            results={
                "MATCH (n) RETURN 1 AS one": [{"one": 1}],
                "MATCH (n) RETURN max(n.age) AS max": [{"max": 42}],
            }
        )

        result = ScriptRunner(sink, mock_probe).run(
            ["MATCH (n) RETURN 1 AS one", "MATCH (n) RETURN max(n.age) AS max"]
        )

        assert result.rows == ({"max": 42},)
        assert sink.executed_once == [
            "MATCH (n) RETURN 1 AS one",
            "MATCH (n) RETURN max(n.age) AS max",
        ]

    def test_no_statements_is_empty_result(self, sink, mock_probe):
        result = ScriptRunner(sink, mock_probe).run([])

        assert result.rows == ()
        assert sink.executed_once == []

    def test_failure_stops_and_reports_statement(self, make_sink, mock_probe):
        sink = make_sink(
            once_failures={"BROKEN": FatalSinkError("syntax", code="Neo.Syntax")}
        )

        with pytest.raises(ScriptExecutionError) as exc_info:
            ScriptRunner(sink, mock_probe).run(["CREATE (a)", "BROKEN", "CREATE (b)"])

        assert exc_info.value.statement == "BROKEN"
        assert exc_info.value.statement_index == 1
        assert exc_info.value.code == "Neo.Syntax"
        assert sink.executed_once == ["CREATE (a)", "BROKEN"]

    def test_reports_each_statement(self, sink, mock_probe):
        ScriptRunner(sink, mock_probe).run(["CREATE (a)", "CREATE (b)"])

        assert mock_probe.script_statement_executed.call_count == 2
        mock_probe.script_statement_executed.assert_called_with(
            statement_index=1, result_count=0
        )
