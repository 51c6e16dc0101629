"""Schema optimization run before ingestion.

Indexes and uniqueness constraints make MERGE on node keys fast (and, for
constraints, safe under concurrent partitions). They are only emitted for
targets that merge nodes.
"""

from __future__ import annotations

from ingestion.domain.exceptions import SchemaOptimizationError, SinkError
from ingestion.domain.statements import quote
from ingestion.domain.value_objects import (
    NodeSpec,
    NodeTarget,
    RelationshipTarget,
    SaveMode,
    SchemaOptimizationType,
    WriteTarget,
)
from ingestion.ports.observability import WriteJobProbe
from ingestion.ports.sink import GraphSinkProtocol


def merged_node_specs(target: WriteTarget) -> list[NodeSpec]:
    """Node descriptions written with MERGE by this target."""
    if isinstance(target, NodeTarget):
        specs = [target.node]
    elif isinstance(target, RelationshipTarget):
        specs = [target.relationship.source, target.relationship.target]
    else:
        return []
    return [spec for spec in specs if spec.save_mode == SaveMode.OVERWRITE]


def is_merge_capable(target: WriteTarget) -> bool:
    """Whether the target merges nodes or relationships."""
    if merged_node_specs(target):
        return True
    return (
        isinstance(target, RelationshipTarget)
        and target.relationship.save_mode == SaveMode.OVERWRITE
    )


def _schema_name(kind: str, node: NodeSpec) -> str:
    return "_".join([kind, node.first_label, *node.keys.targets])


def _properties(node: NodeSpec) -> list[str]:
    return [f"n.{quote(key)}" for key in node.keys.targets]


def index_statement(node: NodeSpec) -> str:
    """Index on the first label and every key property."""
    return (
        f"CREATE INDEX {quote(_schema_name('index', node))} IF NOT EXISTS "
        f"FOR (n:{quote(node.first_label)}) ON ({', '.join(_properties(node))})"
    )


def constraint_statement(node: NodeSpec) -> str:
    """Uniqueness constraint on the first label and every key property."""
    properties = _properties(node)
    required = properties[0] if len(properties) == 1 else f"({', '.join(properties)})"
    return (
        f"CREATE CONSTRAINT {quote(_schema_name('constraint', node))} IF NOT EXISTS "
        f"FOR (n:{quote(node.first_label)}) REQUIRE {required} IS UNIQUE"
    )


class SchemaOptimizer:
    """Emits and runs index, constraint or raw schema statements once per job."""

    def __init__(self, sink: GraphSinkProtocol, probe: WriteJobProbe):
        self._sink = sink
        self._probe = probe

    def plan(
        self,
        target: WriteTarget,
        optimization: SchemaOptimizationType,
        queries: list[str] | None = None,
    ) -> list[str]:
        """Statements to run for the target, in order.

        Args:
            target: The job's write target
            optimization: Requested optimization type
            queries: Statements for SchemaOptimizationType.QUERY
        """
        if optimization == SchemaOptimizationType.NONE or not is_merge_capable(target):
            return []
        if optimization == SchemaOptimizationType.QUERY:
            return list(queries or [])

        statements = []
        for node in merged_node_specs(target):
            if node.keys.is_empty:
                continue
            if optimization == SchemaOptimizationType.INDEX:
                statements.append(index_statement(node))
            else:
                statements.append(constraint_statement(node))
        return statements

    def run(
        self,
        target: WriteTarget,
        optimization: SchemaOptimizationType,
        queries: list[str] | None = None,
    ) -> list[str]:
        """Run the planned statements, stopping at the first failure.

        Returns:
            The statements that were executed

        Raises:
            SchemaOptimizationError: If any statement fails
        """
        statements = self.plan(target, optimization, queries)
        for index, statement in enumerate(statements):
            try:
                self._sink.execute_once(statement)
            except SinkError as e:
                raise SchemaOptimizationError(
                    f"Schema statement {index} failed: {e}",
                    statement=statement,
                    statement_index=index,
                    code=e.code,
                ) from e
            self._probe.schema_statement_executed(statement)
        return statements
