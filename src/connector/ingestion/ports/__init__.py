"""Ingestion ports (interfaces) module.

Ports define the contracts between the application layer and
infrastructure, keeping the write engine independent of a specific
graph database driver.
"""

from ingestion.ports.observability import WriteJobProbe
from ingestion.ports.sink import GraphSinkProtocol, SinkResult

__all__ = ["GraphSinkProtocol", "SinkResult", "WriteJobProbe"]
