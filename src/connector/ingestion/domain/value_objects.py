"""Domain value objects for the ingestion bounded context.

These are immutable data structures describing what a write job writes
(the write target model), how it commits (retry policy) and what it
reports (batch and partition outcomes). Equality is based on attribute
values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# A row as produced by the tabular source. Values are scalars or nested maps.
Row: TypeAlias = Mapping[str, Any]

# A row whose nested-map columns were replaced by dotted-path scalar columns.
FlattenedRow: TypeAlias = dict[str, Any]

# Reserved column groups written by the paired read path and consumed by the
# native relationship strategy.
SOURCE_PREFIX = "source."
TARGET_PREFIX = "target."
REL_PREFIX = "rel."

# Metadata columns of the native schema; they are never written as properties.
NATIVE_METADATA_COLUMNS: frozenset[str] = frozenset(
    {
        "<rel.id>",
        "<rel.type>",
        "<source.id>",
        "<source.labels>",
        "<target.id>",
        "<target.labels>",
    }
)


class SaveMode(str, Enum):
    """How a node or relationship is written.

    CREATE inserts unconditionally, OVERWRITE matches-or-inserts by key
    (requires a uniqueness guarantee on the keys at database level) and
    MATCH only matches existing entities.
    """

    CREATE = "Create"
    OVERWRITE = "Overwrite"
    MATCH = "Match"


class RelationshipStrategy(str, Enum):
    """Where relationship endpoint data comes from."""

    NATIVE = "native"
    KEYS = "keys"


class SchemaOptimizationType(str, Enum):
    """Schema statements emitted before ingestion starts."""

    NONE = "NONE"
    INDEX = "INDEX"
    NODE_CONSTRAINTS = "NODE_CONSTRAINTS"
    QUERY = "QUERY"


class BatchState(str, Enum):
    """Lifecycle of a batch inside the transaction executor."""

    PENDING = "pending"
    SENDING = "sending"
    RETRYING = "retrying"
    COMMITTED = "committed"
    FAILED_FATAL = "failed_fatal"


class KeyMapping(BaseModel):
    """Ordered column-to-graph-name mapping.

    Built from strings like "name:fullName,age" by
    ``ingestion.domain.mapping.parse_mapping``.

    Attributes:
        pairs: Ordered (column, target) pairs; column names and target
            names are each unique
    """

    model_config = ConfigDict(frozen=True)

    pairs: tuple[tuple[str, str], ...] = ()

    @field_validator("pairs")
    @classmethod
    def validate_unique_names(
        cls, pairs: tuple[tuple[str, str], ...]
    ) -> tuple[tuple[str, str], ...]:
        columns = [column for column, _ in pairs]
        if len(columns) != len(set(columns)):
            raise ValueError(f"Duplicate column in key mapping: {columns}")
        targets = [target for _, target in pairs]
        if len(targets) != len(set(targets)):
            raise ValueError(f"Duplicate target in key mapping: {targets}")
        return pairs

    @classmethod
    def identity(cls, columns: list[str] | tuple[str, ...]) -> KeyMapping:
        """Map every column to a property of the same name."""
        return cls(pairs=tuple((column, column) for column in columns))

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(column for column, _ in self.pairs)

    @property
    def targets(self) -> tuple[str, ...]:
        return tuple(target for _, target in self.pairs)

    @property
    def is_empty(self) -> bool:
        return not self.pairs


class Column(BaseModel):
    """A column of the tabular schema; struct columns carry nested children."""

    model_config = ConfigDict(frozen=True)

    name: str
    children: tuple[Column, ...] = ()


class TableSchema(BaseModel):
    """Schema of the rows handed to a write job."""

    model_config = ConfigDict(frozen=True)

    columns: tuple[Column, ...] = ()

    @classmethod
    def from_names(cls, *names: str) -> TableSchema:
        """Build a flat schema from column names."""
        return cls(columns=tuple(Column(name=name) for name in names))

    def flattened_column_names(self) -> list[str]:
        """Column names after nested struct columns are flattened.

        Mirrors ``ingestion.domain.mapping.flatten``: a struct column
        ``lives_in`` with field ``city`` becomes ``lives_in.city``.
        """
        names: list[str] = []

        def visit(column: Column, prefix: str) -> None:
            name = f"{prefix}{column.name}"
            if not column.children:
                names.append(name)
                return
            for child in column.children:
                visit(child, f"{name}.")

        for column in self.columns:
            visit(column, "")
        return names


class NodeSpec(BaseModel):
    """Description of the nodes written for a node target or relationship endpoint.

    Attributes:
        labels: Node labels; the first label scopes indexes and constraints
        keys: Columns identifying the node (required for OVERWRITE and MATCH)
        properties: Columns written as properties; None means every
            non-key column available to the node
        save_mode: How the node is written
    """

    model_config = ConfigDict(frozen=True)

    labels: tuple[str, ...] = Field(min_length=1)
    keys: KeyMapping = Field(default_factory=KeyMapping)
    properties: KeyMapping | None = None
    save_mode: SaveMode = SaveMode.CREATE

    @property
    def first_label(self) -> str:
        return self.labels[0]


class RelationshipSpec(BaseModel):
    """Description of the relationships written for a relationship target.

    Attributes:
        type: Relationship type
        source: Source node description
        target: Target node description
        properties: Relationship property mapping (keys strategy only);
            None means every column not consumed by an endpoint
        strategy: NATIVE reads reserved column groups, KEYS explicit mappings
        save_mode: CREATE or OVERWRITE for the relationship itself
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(min_length=1)
    source: NodeSpec
    target: NodeSpec
    properties: KeyMapping | None = None
    strategy: RelationshipStrategy = RelationshipStrategy.NATIVE
    save_mode: SaveMode = SaveMode.CREATE

    @model_validator(mode="after")
    def validate_save_mode(self) -> RelationshipSpec:
        if self.save_mode == SaveMode.MATCH:
            raise ValueError("Relationships can only be created or overwritten")
        return self


class RawQueryTarget(BaseModel):
    """Rows are handed to a caller-supplied statement as ``event``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["query"] = "query"
    query: str = Field(min_length=1)


class NodeTarget(BaseModel):
    """Rows become nodes."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["node"] = "node"
    node: NodeSpec


class RelationshipTarget(BaseModel):
    """Rows become relationships between two nodes."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["relationship"] = "relationship"
    relationship: RelationshipSpec


WriteTarget: TypeAlias = Annotated[
    Union[RawQueryTarget, NodeTarget, RelationshipTarget],
    Field(discriminator="kind"),
]


class RetryPolicy(BaseModel):
    """Retry behaviour of the transaction executor.

    Attributes:
        max_retries: Retries allowed per batch after its first attempt
        fatal_codes: Error codes that abort immediately without retrying
        retry_interval: Seconds to wait before re-sending a batch
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    fatal_codes: frozenset[str] = frozenset()
    retry_interval: float = Field(default=0.0, ge=0)

    def is_fatal(self, code: str | None) -> bool:
        return code is not None and code in self.fatal_codes


@dataclass(frozen=True)
class Batch:
    """An ordered group of shaped rows committed as one transaction."""

    partition_id: int
    index: int
    rows: tuple[dict[str, Any], ...]

    @property
    def size(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class ScriptResult:
    """Rows returned by the last statement of the preparatory script.

    Computed once per job and shared read-only with every partition.
    """

    rows: tuple[Mapping[str, Any], ...] = ()

    @classmethod
    def empty(cls) -> ScriptResult:
        return cls()

    def as_parameter(self) -> list[dict[str, Any]]:
        """Copy of the rows suitable for binding as a statement parameter."""
        return [dict(row) for row in self.rows]


class BatchOutcome(BaseModel):
    """Final state of one batch and the states it passed through."""

    model_config = ConfigDict(frozen=True)

    partition_id: int
    batch_index: int
    state: BatchState
    rows: int
    attempts: int
    retries: int
    error_code: str | None = None
    history: tuple[BatchState, ...] = ()


@dataclass(frozen=True)
class PartitionResult:
    """What one partition wrote."""

    partition_id: int
    outcomes: tuple[BatchOutcome, ...] = ()
    counters: dict[str, int] = field(default_factory=dict)

    @property
    def batches_committed(self) -> int:
        return sum(1 for o in self.outcomes if o.state == BatchState.COMMITTED)

    @property
    def rows_written(self) -> int:
        return sum(o.rows for o in self.outcomes if o.state == BatchState.COMMITTED)

    @property
    def retries(self) -> int:
        return sum(o.retries for o in self.outcomes)


@dataclass(frozen=True)
class WriteResult:
    """Aggregate result of a completed write job."""

    partitions: tuple[PartitionResult, ...] = ()
    script_result: ScriptResult = field(default_factory=ScriptResult)

    @property
    def batches_committed(self) -> int:
        return sum(p.batches_committed for p in self.partitions)

    @property
    def rows_written(self) -> int:
        return sum(p.rows_written for p in self.partitions)

    @property
    def retries(self) -> int:
        return sum(p.retries for p in self.partitions)

    @property
    def counters(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for partition in self.partitions:
            for name, value in partition.counters.items():
                totals[name] = totals.get(name, 0) + value
        return totals
