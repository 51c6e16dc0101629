"""Unit tests for Neo4jGraphSink."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from neo4j.exceptions import (
    ClientError,
    ServiceUnavailable,
    SessionExpired,
    TransientError,
)
from pydantic import SecretStr

from infrastructure.settings import Neo4jSettings, get_neo4j_settings
from ingestion.application.compiler import QueryCompiler
from ingestion.application.transaction_executor import TransactionExecutor
from ingestion.domain.exceptions import FatalSinkError, RetryableSinkError
from ingestion.domain.value_objects import (
    Batch,
    RawQueryTarget,
    RetryPolicy,
    TableSchema,
)
from ingestion.infrastructure.neo4j_sink import Neo4jGraphSink, translate_error


class FakeClientError(ClientError):
    code = "Neo.ClientError.Statement.SyntaxError"

    def __init__(self, message: str):
        Exception.__init__(self, message)

    def __str__(self) -> str:
        return self.args[0]


class FakeTransientError(TransientError):
    code = "Neo.TransientError.Transaction.DeadlockDetected"

    def __init__(self, message: str):
        Exception.__init__(self, message)

    def __str__(self) -> str:
        return self.args[0]


@pytest.fixture
def settings():
    return Neo4jSettings(
        uri="bolt://graph:7687",
        username="writer",
        password=SecretStr("secret"),
        database="sales",
        _env_file=None,
    )


@pytest.fixture
def driver():
    driver = MagicMock()
    session = driver.session.return_value.__enter__.return_value
    tx = session.begin_transaction.return_value.__enter__.return_value
    tx.run.return_value.consume.return_value.counters = SimpleNamespace(
        nodes_created=2, properties_set=4, relationships_created=0
    )
    session.run.return_value.data.return_value = [{"max": 9}]
    return driver


@pytest.fixture
def probe():
    return MagicMock()


def _tx(driver):
    session = driver.session.return_value.__enter__.return_value
    return session.begin_transaction.return_value.__enter__.return_value


class TestTranslateError:
    """Tests for driver error translation."""

    def test_client_error_is_fatal(self):
        error = translate_error(FakeClientError("bad syntax"))

        assert isinstance(error, FatalSinkError)
        assert error.code == "Neo.ClientError.Statement.SyntaxError"

    def test_transient_error_is_retryable(self):
        error = translate_error(FakeTransientError("deadlock"))

        assert isinstance(error, RetryableSinkError)
        assert error.code == "Neo.TransientError.Transaction.DeadlockDetected"

    @pytest.mark.parametrize("error_type", [ServiceUnavailable, SessionExpired])
    def test_connectivity_errors_are_retryable(self, error_type):
        error = translate_error(error_type("connection lost"))

        assert isinstance(error, RetryableSinkError)
        assert error.code == error_type.__name__

    def test_unknown_errors_are_fatal(self):
        assert isinstance(translate_error(RuntimeError("boom")), FatalSinkError)


class TestConnect:
    """Tests for connection lifecycle."""

    def test_creates_driver_from_settings(self, settings, probe):
        with patch(
            "ingestion.infrastructure.neo4j_sink.GraphDatabase.driver"
        ) as create_driver:
            sink = Neo4jGraphSink(settings, probe=probe)
            sink.connect()

        create_driver.assert_called_once_with(
            "bolt://graph:7687",
            auth=("writer", "secret"),
            connection_timeout=30.0,
        )
        create_driver.return_value.verify_connectivity.assert_called_once()
        probe.sink_connected.assert_called_once_with("bolt://graph:7687", "sales")

    def test_unreachable_database_is_fatal(self, settings, driver, probe):
        driver.verify_connectivity.side_effect = ServiceUnavailable("down")

        with pytest.raises(FatalSinkError, match="bolt://graph:7687"):
            Neo4jGraphSink(settings, probe=probe, driver=driver).connect()

    def test_context_manager_closes_driver(self, settings, driver, probe):
        with Neo4jGraphSink(settings, probe=probe, driver=driver):
            pass

        driver.close.assert_called_once()

    def test_execute_requires_connection(self, settings, probe):
        with pytest.raises(FatalSinkError, match="not connected"):
            Neo4jGraphSink(settings, probe=probe).execute("RETURN 1", {})


class TestExecute:
    """Tests for batch and one-off statement execution."""

    def test_runs_and_commits_in_explicit_transaction(self, settings, driver, probe):
        sink = Neo4jGraphSink(settings, probe=probe, driver=driver)

        result = sink.execute("UNWIND $events AS event RETURN event", {"events": [1]})

        driver.session.assert_called_with(database="sales")
        tx = _tx(driver)
        tx.run.assert_called_once_with(
            "UNWIND $events AS event RETURN event", {"events": [1]}
        )
        tx.commit.assert_called_once()
        assert result.counters == {"nodes_created": 2, "properties_set": 4}

    def test_translates_transaction_failures(self, settings, driver, probe):
        _tx(driver).run.side_effect = FakeTransientError("deadlock")
        sink = Neo4jGraphSink(settings, probe=probe, driver=driver)

        with pytest.raises(RetryableSinkError) as exc_info:
            sink.execute("RETURN 1", {})

        assert exc_info.value.code == FakeTransientError.code
        probe.statement_failed.assert_called_once()

    def test_execute_once_returns_rows(self, settings, driver, probe):
        sink = Neo4jGraphSink(settings, probe=probe, driver=driver)

        assert sink.execute_once("MATCH (n) RETURN max(n.age) AS max") == [{"max": 9}]

    def test_execute_once_translates_failures(self, settings, driver, probe):
        session = driver.session.return_value.__enter__.return_value
        session.run.side_effect = FakeClientError("bad syntax")
        sink = Neo4jGraphSink(settings, probe=probe, driver=driver)

        with pytest.raises(FatalSinkError):
            sink.execute_once("BROKEN")


class TestUnencodableParameters:
    """Tests for parameter values the driver cannot send."""

    UNSUPPORTED = "Values of type <class 'decimal.Decimal'> are not supported"

    @pytest.mark.parametrize("error_type", [ValueError, TypeError])
    def test_encoding_errors_are_fatal(self, settings, driver, probe, error_type):
        _tx(driver).run.side_effect = error_type(self.UNSUPPORTED)
        sink = Neo4jGraphSink(settings, probe=probe, driver=driver)

        with pytest.raises(FatalSinkError, match="Decimal") as exc_info:
            sink.execute("RETURN $events", {"events": [{"price": Decimal("1.5")}]})

        assert exc_info.value.code == error_type.__name__
        probe.statement_failed.assert_called_once()

    def test_executor_reports_batch_context(self, settings, driver, probe):
        """The failing batch is reported with its index and never retried."""
        _tx(driver).run.side_effect = ValueError(self.UNSUPPORTED)
        compiled = QueryCompiler().compile(
            RawQueryTarget(query="CREATE (n:Item {price: event.price})"),
            TableSchema.from_names("price"),
        )
        job_probe = MagicMock()
        executor = TransactionExecutor(
            sink=Neo4jGraphSink(settings, probe=probe, driver=driver),
            compiled=compiled,
            policy=RetryPolicy(max_retries=3),
            probe=job_probe,
        )

        with pytest.raises(FatalSinkError) as exc_info:
            executor.commit(
                Batch(partition_id=0, index=3, rows=({"price": Decimal("1.5")},))
            )

        assert exc_info.value.batch_index == 3
        assert exc_info.value.attempts == 1
        assert exc_info.value.statement == compiled.text
        job_probe.batch_failed.assert_called_once()
        job_probe.batch_retry_scheduled.assert_not_called()


class TestDefaultSettings:
    """Tests for settings resolution."""

    @pytest.fixture(autouse=True)
    def clear_settings_cache(self):
        get_neo4j_settings.cache_clear()
        yield
        get_neo4j_settings.cache_clear()

    def test_reads_settings_from_environment(self, monkeypatch, driver, probe):
        """Should fall back to the cached environment settings."""
        monkeypatch.setenv("GRAPH_INGEST_NEO4J_URI", "bolt://env-graph:7687")
        monkeypatch.setenv("GRAPH_INGEST_NEO4J_DATABASE", "orders")

        Neo4jGraphSink(probe=probe, driver=driver).connect()

        probe.sink_connected.assert_called_once_with(
            "bolt://env-graph:7687", "orders"
        )
