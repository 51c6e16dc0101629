"""Neo4j implementation of the graph sink.

Uses the official neo4j driver. Each ``execute`` call runs in an explicit
transaction so the transaction executor, not the driver, owns retries.
"""

from __future__ import annotations

from typing import Any, Mapping

from neo4j import GraphDatabase
from neo4j.exceptions import (
    ClientError,
    DriverError,
    Neo4jError,
    ServiceUnavailable,
    SessionExpired,
)

from infrastructure.settings import Neo4jSettings, get_neo4j_settings
from ingestion.domain.exceptions import FatalSinkError, RetryableSinkError, SinkError
from ingestion.infrastructure.observability import (
    DefaultGraphSinkProbe,
    GraphSinkProbe,
)
from ingestion.ports.sink import SinkResult

_COUNTER_NAMES = (
    "nodes_created",
    "nodes_deleted",
    "relationships_created",
    "relationships_deleted",
    "properties_set",
    "labels_added",
    "labels_removed",
    "indexes_added",
    "constraints_added",
)


class Neo4jGraphSink:
    """Neo4j implementation of the GraphSinkProtocol.

    Example:
        sink = Neo4jGraphSink()
        sink.connect()
        sink.execute("UNWIND $events AS event CREATE (n:Person) SET n += event", {...})
        sink.close()
    """

    def __init__(
        self,
        settings: Neo4jSettings | None = None,
        probe: GraphSinkProbe | None = None,
        driver: Any | None = None,
    ):
        self._settings = settings or get_neo4j_settings()
        self._probe = probe or DefaultGraphSinkProbe()
        self._driver = driver

    def connect(self) -> None:
        """Create the driver (unless one was injected) and verify connectivity.

        Raises:
            FatalSinkError: If the database cannot be reached
        """
        if self._driver is None:
            self._driver = GraphDatabase.driver(
                self._settings.uri,
                auth=(
                    self._settings.username,
                    self._settings.password.get_secret_value(),
                ),
                connection_timeout=self._settings.connection_timeout,
            )
        try:
            self._driver.verify_connectivity()
        except (Neo4jError, DriverError) as e:
            raise FatalSinkError(
                f"Failed to connect to {self._settings.uri}: {e}",
                code=_error_code(e),
            ) from e
        self._probe.sink_connected(self._settings.uri, self._settings.database)

    def close(self) -> None:
        if self._driver is not None:
            self._driver.close()
            self._driver = None

    def __enter__(self) -> Neo4jGraphSink:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def _connected_driver(self) -> Any:
        if self._driver is None:
            raise FatalSinkError("Graph sink is not connected")
        return self._driver

    def execute(self, statement: str, parameters: Mapping[str, Any]) -> SinkResult:
        """Run the statement in one explicit transaction and commit it.

        Parameter values the driver cannot encode (e.g. Decimal) surface as
        ValueError or TypeError from the driver and are reported as fatal.
        """
        try:
            with self._connected_driver.session(
                database=self._settings.database
            ) as session:
                with session.begin_transaction() as tx:
                    summary = tx.run(statement, dict(parameters)).consume()
                    tx.commit()
        except (Neo4jError, DriverError, ValueError, TypeError) as e:
            error = translate_error(e)
            self._probe.statement_failed(statement, error.code, e)
            raise error from e
        return SinkResult(counters=_counters(summary))

    def execute_once(self, statement: str) -> list[dict[str, Any]]:
        """Run a script or schema statement in an auto-commit transaction."""
        try:
            with self._connected_driver.session(
                database=self._settings.database
            ) as session:
                return session.run(statement).data()
        except (Neo4jError, DriverError) as e:
            error = translate_error(e)
            self._probe.statement_failed(statement, error.code, e)
            raise error from e


def translate_error(error: Exception) -> SinkError:
    """Translate a driver exception into the sink error taxonomy.

    Client errors (syntax, constraint violations, security) cannot succeed
    when re-sent; transient, database and connectivity errors may.
    """
    code = _error_code(error)
    if isinstance(error, ClientError):
        return FatalSinkError(str(error), code=code)
    if isinstance(error, Neo4jError):
        return RetryableSinkError(str(error), code=code)
    if isinstance(error, (ServiceUnavailable, SessionExpired)):
        return RetryableSinkError(str(error), code=code)
    return FatalSinkError(str(error), code=code)


def _error_code(error: Exception) -> str:
    code = getattr(error, "code", None)
    return code or type(error).__name__


def _counters(summary: Any) -> dict[str, int]:
    counters = summary.counters
    return {
        name: getattr(counters, name, 0)
        for name in _COUNTER_NAMES
        if getattr(counters, name, 0)
    }
