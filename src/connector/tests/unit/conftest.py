"""Unit test fixtures with in-memory collaborators."""

from __future__ import annotations

import threading
from typing import Any, Mapping
from unittest.mock import MagicMock

import pytest

from ingestion.domain.exceptions import SinkError
from ingestion.ports.sink import SinkResult


class RecordingSink:
    """Graph sink that records every statement and fails on demand.

    Attributes:
        attempts: Every (statement, parameters) passed to execute, including failed ones
        committed: (statement, parameters) of successful executes, in commit order
        executed_once: Statements passed to execute_once, in order
    """

    def __init__(
        self,
        failures: list[SinkError] | None = None,
        results: Mapping[str, list[dict[str, Any]]] | None = None,
        once_failures: Mapping[str, SinkError] | None = None,
    ):
        self.attempts: list[tuple[str, dict[str, Any]]] = []
        self.committed: list[tuple[str, dict[str, Any]]] = []
        self.executed_once: list[str] = []
        self._failures = list(failures or [])
        self._results = dict(results or {})
        self._once_failures = dict(once_failures or {})
        self._lock = threading.Lock()

    def execute(self, statement: str, parameters: Mapping[str, Any]) -> SinkResult:
        with self._lock:
            self.attempts.append((statement, dict(parameters)))
            if self._failures:
                raise self._failures.pop(0)
            self.committed.append((statement, dict(parameters)))
        return SinkResult(counters={"nodes_created": len(parameters["events"])})

    def execute_once(self, statement: str) -> list[dict[str, Any]]:
        self.executed_once.append(statement)
        if statement in self._once_failures:
            raise self._once_failures[statement]
        return [dict(row) for row in self._results.get(statement, [])]

    @property
    def committed_rows(self) -> list[dict[str, Any]]:
        return [row for _, parameters in self.committed for row in parameters["events"]]


@pytest.fixture
def make_sink():
    """Provide a factory for sinks with scripted failures and results."""
    return RecordingSink


@pytest.fixture
def sink():
    """Provide a sink that commits everything."""
    return RecordingSink()


@pytest.fixture
def mock_probe():
    """Provide a probe recording every call."""
    probe = MagicMock()
    probe.with_context.return_value = probe
    return probe


@pytest.fixture
def writer_settings():
    """Provide writer settings independent of the environment."""
    from infrastructure.settings import WriterSettings

    return WriterSettings(max_workers=2, default_batch_size=5000)
