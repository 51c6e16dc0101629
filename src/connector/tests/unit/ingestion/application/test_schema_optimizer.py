"""Unit tests for schema optimization."""

import pytest

from ingestion.application.schema_optimizer import (
    SchemaOptimizer,
    constraint_statement,
    index_statement,
    is_merge_capable,
)
from ingestion.domain.exceptions import FatalSinkError, SchemaOptimizationError
from ingestion.domain.mapping import parse_mapping
from ingestion.domain.value_objects import (
    NodeSpec,
    NodeTarget,
    RawQueryTarget,
    RelationshipSpec,
    RelationshipTarget,
    SaveMode,
    SchemaOptimizationType,
)


def _node(keys="surname", save_mode=SaveMode.OVERWRITE, labels=("Person",)):
    return NodeSpec(labels=labels, keys=parse_mapping(keys), save_mode=save_mode)


class TestStatements:
    """Tests for generated schema statements."""

    def test_index_on_first_label_and_keys(self):
        assert index_statement(_node(labels=("Person", "Customer"))) == (
            "CREATE INDEX index_Person_surname IF NOT EXISTS "
            "FOR (n:Person) ON (n.surname)"
        )

    def test_single_key_constraint(self):
        assert constraint_statement(_node()) == (
            "CREATE CONSTRAINT constraint_Person_surname IF NOT EXISTS "
            "FOR (n:Person) REQUIRE n.surname IS UNIQUE"
        )

    def test_composite_key_constraint(self):
        assert constraint_statement(_node(keys="name,surname")) == (
            "CREATE CONSTRAINT constraint_Person_name_surname IF NOT EXISTS "
            "FOR (n:Person) REQUIRE (n.name, n.surname) IS UNIQUE"
        )


class TestPlan:
    """Tests for SchemaOptimizer.plan."""

    @pytest.fixture
    def optimizer(self, sink, mock_probe):
        return SchemaOptimizer(sink, mock_probe)

    def test_index_for_merged_node_target(self, optimizer):
        statements = optimizer.plan(
            NodeTarget(node=_node()), SchemaOptimizationType.INDEX
        )

        assert statements == [index_statement(_node())]

    def test_nothing_for_none(self, optimizer):
        assert optimizer.plan(NodeTarget(node=_node()), SchemaOptimizationType.NONE) == []

    def test_nothing_for_create_targets(self, optimizer):
        """Plain CREATE needs no schema work."""
        target = NodeTarget(node=_node(save_mode=SaveMode.CREATE))

        assert not is_merge_capable(target)
        assert optimizer.plan(target, SchemaOptimizationType.NODE_CONSTRAINTS) == []

    def test_nothing_for_raw_query(self, optimizer):
        target = RawQueryTarget(query="RETURN 1")

        assert optimizer.plan(target, SchemaOptimizationType.QUERY, ["X"]) == []

    def test_relationship_constrains_merged_endpoints_only(self, optimizer):
        target = RelationshipTarget(
            relationship=RelationshipSpec(
                type="BOUGHT",
                source=_node(keys="id"),
                target=_node(keys="id", labels=("Product",), save_mode=SaveMode.MATCH),
            )
        )

        statements = optimizer.plan(target, SchemaOptimizationType.NODE_CONSTRAINTS)

        assert statements == [constraint_statement(_node(keys="id"))]

    def test_query_type_uses_given_statements(self, optimizer):
        statements = optimizer.plan(
            NodeTarget(node=_node()),
            SchemaOptimizationType.QUERY,
            ["CREATE INDEX a", "CREATE INDEX b"],
        )

        assert statements == ["CREATE INDEX a", "CREATE INDEX b"]


class TestRun:
    """Tests for SchemaOptimizer.run."""

    def test_executes_each_statement(self, sink, mock_probe):
        executed = SchemaOptimizer(sink, mock_probe).run(
            NodeTarget(node=_node()), SchemaOptimizationType.INDEX
        )

        assert sink.executed_once == executed
        mock_probe.schema_statement_executed.assert_called_once_with(executed[0])

    def test_failure_is_schema_optimization_error(self, make_sink, mock_probe):
        statement = constraint_statement(_node())
        sink = make_sink(
            once_failures={
                statement: FatalSinkError(
                    "duplicates", code="Neo.ClientError.Schema.ConstraintCreationFailed"
                )
            }
        )

        with pytest.raises(SchemaOptimizationError) as exc_info:
            SchemaOptimizer(sink, mock_probe).run(
                NodeTarget(node=_node()), SchemaOptimizationType.NODE_CONSTRAINTS
            )

        assert exc_info.value.statement == statement
        assert exc_info.value.code == "Neo.ClientError.Schema.ConstraintCreationFailed"
