"""Query compiler for write targets.

Turns a write target into a parameterized statement and a row shaper,
once per job. Every statement unwinds a single list parameter holding the
batch, and binds the script result as a read-only variable:

    WITH $scriptResult AS scriptResult
    UNWIND $events AS event
    ...

Save mode to verb mapping for nodes and relationships:
    Create    -> CREATE
    Overwrite -> MERGE on the keys (needs a uniqueness guarantee on the
                 keys at database level; not enforced here)
    Match     -> MATCH on the keys, never inserts
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from ingestion.domain.exceptions import ConfigurationError, SchemaMismatchError
from ingestion.domain.mapping import resolve, validate_columns
from ingestion.domain.statements import (
    EVENT_VARIABLE,
    EVENTS_PARAMETER,
    SCRIPT_RESULT_PARAMETER,
    SCRIPT_RESULT_VARIABLE,
    NodeClause,
    NodePattern,
    RawClause,
    RelationshipClause,
    RelationshipPattern,
    SetProperties,
    Statement,
    StatementClause,
    Unwind,
    Verb,
    With,
    property_access,
)
from ingestion.domain.value_objects import (
    NATIVE_METADATA_COLUMNS,
    REL_PREFIX,
    SOURCE_PREFIX,
    TARGET_PREFIX,
    Batch,
    FlattenedRow,
    KeyMapping,
    NodeSpec,
    NodeTarget,
    RawQueryTarget,
    RelationshipSpec,
    RelationshipStrategy,
    RelationshipTarget,
    SaveMode,
    ScriptResult,
    TableSchema,
    WriteTarget,
)

NODE_VARIABLE = "node"
SOURCE_VARIABLE = "source"
TARGET_VARIABLE = "target"
REL_VARIABLE = "rel"

_VERBS: dict[SaveMode, Verb] = {
    SaveMode.CREATE: Verb.CREATE,
    SaveMode.OVERWRITE: Verb.MERGE,
    SaveMode.MATCH: Verb.MATCH,
}

RowShaper = Callable[[FlattenedRow], dict[str, Any]]


def _group(row: FlattenedRow, prefix: str) -> FlattenedRow:
    """Columns under a reserved prefix, with the prefix stripped."""
    return {
        name[len(prefix) :]: value
        for name, value in row.items()
        if name.startswith(prefix)
    }


@dataclass(frozen=True)
class RawQueryShaper:
    """Exposes every flattened column as a field of ``event``."""

    def __call__(self, row: FlattenedRow) -> dict[str, Any]:
        return dict(row)


@dataclass(frozen=True)
class NodeShaper:
    """Shapes a row into {"keys": {...}, "properties": {...}}.

    Attributes:
        keys: Key mapping resolved against the visible columns
        properties: Property mapping; None means every visible non-key column
        prefix: When set, only columns under this reserved prefix are
            visible, with the prefix stripped
    """

    keys: KeyMapping
    properties: KeyMapping | None = None
    prefix: str = ""

    def __call__(self, row: FlattenedRow) -> dict[str, Any]:
        view = _group(row, self.prefix) if self.prefix else row
        if self.properties is None:
            key_columns = set(self.keys.columns)
            properties = {
                name: value for name, value in view.items() if name not in key_columns
            }
        else:
            properties = resolve(self.properties, view)
        return {"keys": resolve(self.keys, view), "properties": properties}


@dataclass(frozen=True)
class RelationshipShaper:
    """Shapes a row into {"source": ..., "target": ..., "rel": {"properties": ...}}.

    Relationship properties come from the ``rel.`` group when ``rel_prefix``
    is set, otherwise from the explicit mapping, otherwise from every column
    not in ``excluded``.
    """

    source: NodeShaper
    target: NodeShaper
    properties: KeyMapping | None = None
    rel_prefix: str = ""
    excluded: frozenset[str] = frozenset()

    def __call__(self, row: FlattenedRow) -> dict[str, Any]:
        if self.rel_prefix:
            properties = _group(row, self.rel_prefix)
        elif self.properties is not None:
            properties = resolve(self.properties, row)
        else:
            properties = {
                name: value
                for name, value in row.items()
                if name not in self.excluded and name not in NATIVE_METADATA_COLUMNS
            }
        return {
            SOURCE_VARIABLE: self.source(row),
            TARGET_VARIABLE: self.target(row),
            REL_VARIABLE: {"properties": properties},
        }


@dataclass(frozen=True)
class CompiledWrite:
    """Statement template and row shaper compiled for one write job.

    Immutable; shared read-only by every partition of the job.
    """

    target: WriteTarget
    statement: Statement
    text: str
    shaper: RowShaper

    def shape(self, row: FlattenedRow) -> dict[str, Any]:
        return self.shaper(row)

    def parameters(
        self, batch: Batch, script_result: ScriptResult
    ) -> dict[str, Any]:
        """Bind a batch and the script result to the statement parameters."""
        return {
            EVENTS_PARAMETER: list(batch.rows),
            SCRIPT_RESULT_PARAMETER: script_result.as_parameter(),
        }


def _preamble() -> list[StatementClause]:
    return [
        With(f"${SCRIPT_RESULT_PARAMETER}", SCRIPT_RESULT_VARIABLE),
        Unwind(EVENTS_PARAMETER, EVENT_VARIABLE),
    ]


def _carry(*variables: str) -> RawClause:
    # Cypher requires WITH between an updating clause and a following MATCH
    return RawClause("WITH " + ", ".join(variables))


class QueryCompiler:
    """Compiles a write target against the schema of the rows to write.

    Compilation is pure and validates everything it can before I/O:
    missing keys, unknown columns and native schemas without reserved
    columns are all reported here.
    """

    def compile(self, target: WriteTarget, schema: TableSchema) -> CompiledWrite:
        """Compile the statement template and row shaper for a target.

        Raises:
            ConfigurationError: If keys required by a save mode are missing
            SchemaMismatchError: If a native relationship schema has no
                reserved columns
            MissingColumnError: If a mapping references an unknown column
        """
        columns = schema.flattened_column_names()
        match target:
            case RawQueryTarget():
                statement = Statement(
                    clauses=(*_preamble(), RawClause(target.query))
                )
                shaper: RowShaper = RawQueryShaper()
            case NodeTarget():
                statement, shaper = self._compile_node(target.node, columns)
            case RelationshipTarget():
                statement, shaper = self._compile_relationship(
                    target.relationship, columns
                )
            case _:
                raise ConfigurationError(f"Unsupported write target: {target!r}")

        return CompiledWrite(
            target=target,
            statement=statement,
            text=statement.render(),
            shaper=shaper,
        )

    def _compile_node(
        self, node: NodeSpec, columns: list[str]
    ) -> tuple[Statement, NodeShaper]:
        self._require_keys(node, "node.keys")
        validate_columns(node.keys, columns)
        if node.properties is not None:
            validate_columns(node.properties, columns)

        clauses = [
            *_preamble(),
            *self._node_clauses(node, NODE_VARIABLE, EVENT_VARIABLE),
        ]
        if node.save_mode == SaveMode.MATCH:
            # A statement cannot end on MATCH
            clauses.append(RawClause(f"RETURN count({NODE_VARIABLE}) AS matched"))

        return Statement(clauses=tuple(clauses)), NodeShaper(
            keys=node.keys, properties=node.properties
        )

    def _compile_relationship(
        self, relationship: RelationshipSpec, columns: list[str]
    ) -> tuple[Statement, RelationshipShaper]:
        if relationship.strategy == RelationshipStrategy.NATIVE:
            shaper = self._native_shaper(relationship, columns)
        else:
            shaper = self._keys_shaper(relationship, columns)

        clauses: list[StatementClause] = [*_preamble()]
        clauses.extend(
            self._node_clauses(
                relationship.source,
                SOURCE_VARIABLE,
                property_access(EVENT_VARIABLE, SOURCE_VARIABLE),
            )
        )
        clauses.append(_carry(SCRIPT_RESULT_VARIABLE, EVENT_VARIABLE, SOURCE_VARIABLE))
        clauses.extend(
            self._node_clauses(
                relationship.target,
                TARGET_VARIABLE,
                property_access(EVENT_VARIABLE, TARGET_VARIABLE),
            )
        )
        clauses.append(
            RelationshipClause(
                verb=_VERBS[relationship.save_mode],
                pattern=RelationshipPattern(
                    variable=REL_VARIABLE,
                    type=relationship.type,
                    source_variable=SOURCE_VARIABLE,
                    target_variable=TARGET_VARIABLE,
                ),
            )
        )
        clauses.append(
            SetProperties(
                REL_VARIABLE,
                property_access(EVENT_VARIABLE, REL_VARIABLE, "properties"),
            )
        )
        return Statement(clauses=tuple(clauses)), shaper

    def _native_shaper(
        self, relationship: RelationshipSpec, columns: list[str]
    ) -> RelationshipShaper:
        reserved = [
            column
            for column in columns
            if column in NATIVE_METADATA_COLUMNS
            or column.startswith((SOURCE_PREFIX, TARGET_PREFIX, REL_PREFIX))
        ]
        if not reserved:
            raise SchemaMismatchError(
                "The native relationship strategy requires the reserved "
                f"'{SOURCE_PREFIX}*', '{TARGET_PREFIX}*' and '{REL_PREFIX}*' columns; "
                f"none found in {columns}"
            )

        endpoints = []
        for node, prefix, option in (
            (relationship.source, SOURCE_PREFIX, "relationship.source.node.keys"),
            (relationship.target, TARGET_PREFIX, "relationship.target.node.keys"),
        ):
            self._require_keys(node, option)
            group = [c[len(prefix) :] for c in columns if c.startswith(prefix)]
            validate_columns(node.keys, group)
            if node.properties is not None:
                validate_columns(node.properties, group)
            endpoints.append(
                NodeShaper(keys=node.keys, properties=node.properties, prefix=prefix)
            )

        return RelationshipShaper(
            source=endpoints[0], target=endpoints[1], rel_prefix=REL_PREFIX
        )

    def _keys_shaper(
        self, relationship: RelationshipSpec, columns: list[str]
    ) -> RelationshipShaper:
        endpoints = []
        consumed: set[str] = set()
        for node, option in (
            (relationship.source, "relationship.source.node.keys"),
            (relationship.target, "relationship.target.node.keys"),
        ):
            if node.keys.is_empty:
                raise ConfigurationError(
                    f"The keys relationship strategy requires '{option}'"
                )
            properties = node.properties or KeyMapping()
            validate_columns(node.keys, columns)
            validate_columns(properties, columns)
            consumed.update(node.keys.columns)
            consumed.update(properties.columns)
            endpoints.append(NodeShaper(keys=node.keys, properties=properties))

        if relationship.properties is not None:
            validate_columns(relationship.properties, columns)

        return RelationshipShaper(
            source=endpoints[0],
            target=endpoints[1],
            properties=relationship.properties,
            excluded=frozenset(consumed),
        )

    def _node_clauses(
        self, node: NodeSpec, variable: str, event: str
    ) -> list[StatementClause]:
        """Clauses writing one node bound to ``variable``.

        ``event`` is the expression holding the node's shaped keys and
        properties (``event`` for node targets, ``event.source`` for
        relationship endpoints).
        """
        pattern = NodePattern(
            variable=variable,
            labels=node.labels,
            key_properties=tuple(
                (key, property_access(event, "keys", key))
                for key in node.keys.targets
            ),
        )
        clauses: list[StatementClause] = [
            NodeClause(verb=_VERBS[node.save_mode], pattern=pattern)
        ]
        if node.save_mode != SaveMode.MATCH:
            clauses.append(
                SetProperties(variable, property_access(event, "properties"))
            )
        return clauses

    @staticmethod
    def _require_keys(node: NodeSpec, option: str) -> None:
        if node.save_mode in (SaveMode.OVERWRITE, SaveMode.MATCH) and node.keys.is_empty:
            raise ConfigurationError(
                f"Save mode {node.save_mode.value} for labels "
                f"{':'.join(node.labels)} requires '{option}'"
            )
