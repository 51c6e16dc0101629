"""Validated write options.

The string options handed over by the tabular engine ("labels",
"node.keys", "transaction.codes.fail", ...) are parsed once into a frozen
pydantic model at plan time. Malformed input is rejected before any row is
processed; nothing downstream parses option strings again.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from infrastructure.settings import WriterSettings
from ingestion.domain.exceptions import ConfigurationError
from ingestion.domain.mapping import parse_labels, parse_mapping
from ingestion.domain.statements import split_statements
from ingestion.domain.value_objects import (
    KeyMapping,
    NodeSpec,
    NodeTarget,
    RawQueryTarget,
    RelationshipSpec,
    RelationshipStrategy,
    RelationshipTarget,
    RetryPolicy,
    SaveMode,
    SchemaOptimizationType,
    WriteTarget,
)

DEFAULT_BATCH_SIZE = 5000

# Top-level save modes of the tabular engine.
_JOB_SAVE_MODES: dict[str, SaveMode] = {
    "errorifexists": SaveMode.CREATE,
    "overwrite": SaveMode.OVERWRITE,
    "append": SaveMode.OVERWRITE,
}

# Save modes accepted for relationship endpoints.
_ENDPOINT_SAVE_MODES: dict[str, SaveMode] = {
    "match": SaveMode.MATCH,
    "overwrite": SaveMode.OVERWRITE,
    "errorifexists": SaveMode.CREATE,
}


def job_save_mode(value: str | SaveMode) -> SaveMode:
    """Map the engine save mode (ErrorIfExists, Overwrite, Append) to a SaveMode.

    Raises:
        ConfigurationError: If the save mode is unknown
    """
    if isinstance(value, SaveMode):
        return value
    try:
        return _JOB_SAVE_MODES[value.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported save mode '{value}': expected one of "
            "ErrorIfExists, Overwrite, Append"
        ) from None


class WriteOptions(BaseModel):
    """Write job options, keyed by their dotted option names.

    Build with ``WriteOptions.from_options`` so that validation failures
    surface as ``ConfigurationError``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    query: str | None = None
    labels: str | None = None
    relationship: str | None = None

    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, alias="batch.size", ge=1)
    transaction_codes_fail: frozenset[str] = Field(
        default=frozenset(), alias="transaction.codes.fail"
    )
    transaction_retries: int = Field(default=3, alias="transaction.retries", ge=0)
    transaction_retry_timeout: int = Field(
        default=0,
        alias="transaction.retry.timeout",
        ge=0,
        description="Milliseconds to wait before re-sending a failed batch",
    )

    node_keys: KeyMapping = Field(default_factory=KeyMapping, alias="node.keys")
    node_properties: KeyMapping | None = Field(default=None, alias="node.properties")

    relationship_save_strategy: RelationshipStrategy = Field(
        default=RelationshipStrategy.NATIVE, alias="relationship.save.strategy"
    )
    relationship_source_labels: str | None = Field(
        default=None, alias="relationship.source.labels"
    )
    relationship_target_labels: str | None = Field(
        default=None, alias="relationship.target.labels"
    )
    relationship_source_node_keys: KeyMapping = Field(
        default_factory=KeyMapping, alias="relationship.source.node.keys"
    )
    relationship_target_node_keys: KeyMapping = Field(
        default_factory=KeyMapping, alias="relationship.target.node.keys"
    )
    relationship_source_save_mode: SaveMode = Field(
        default=SaveMode.MATCH, alias="relationship.source.save.mode"
    )
    relationship_target_save_mode: SaveMode = Field(
        default=SaveMode.MATCH, alias="relationship.target.save.mode"
    )
    relationship_source_node_properties: KeyMapping | None = Field(
        default=None, alias="relationship.source.node.properties"
    )
    relationship_target_node_properties: KeyMapping | None = Field(
        default=None, alias="relationship.target.node.properties"
    )
    relationship_properties: KeyMapping | None = Field(
        default=None, alias="relationship.properties"
    )

    schema_optimization_type: SchemaOptimizationType = Field(
        default=SchemaOptimizationType.NONE, alias="schema.optimization.type"
    )
    schema_optimization_query: str | None = Field(
        default=None, alias="schema.optimization.query"
    )
    script: str | None = None

    @classmethod
    def from_options(
        cls,
        options: Mapping[str, Any],
        settings: WriterSettings | None = None,
    ) -> WriteOptions:
        """Validate raw string options.

        Args:
            options: Option map as handed over by the tabular engine
            settings: Process settings supplying the default batch size

        Raises:
            ConfigurationError: If any option is malformed
        """
        values = dict(options)
        if settings is not None and "batch.size" not in values:
            values["batch.size"] = settings.default_batch_size
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid write options: {e}") from e

    @field_validator("transaction_codes_fail", mode="before")
    @classmethod
    def split_codes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return frozenset(code.strip() for code in value.split(",") if code.strip())
        return value

    @field_validator(
        "node_keys",
        "node_properties",
        "relationship_source_node_keys",
        "relationship_target_node_keys",
        "relationship_source_node_properties",
        "relationship_target_node_properties",
        "relationship_properties",
        mode="before",
    )
    @classmethod
    def parse_key_mapping(cls, value: Any) -> Any:
        # MalformedMappingError is not a ValueError, so it propagates as-is
        if isinstance(value, str):
            return parse_mapping(value)
        return value

    @field_validator("relationship_save_strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator(
        "relationship_source_save_mode",
        "relationship_target_save_mode",
        mode="before",
    )
    @classmethod
    def parse_endpoint_save_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            mode = _ENDPOINT_SAVE_MODES.get(value.strip().lower())
            if mode is None:
                raise ValueError(
                    f"'{value}' is not one of Match, Overwrite, ErrorIfExists"
                )
            return mode
        return value

    @field_validator("schema_optimization_type", mode="before")
    @classmethod
    def normalize_optimization_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.transaction_retries,
            fatal_codes=self.transaction_codes_fail,
            retry_interval=self.transaction_retry_timeout / 1000,
        )

    def script_statements(self) -> list[str]:
        return split_statements(self.script)

    def schema_queries(self) -> list[str]:
        return split_statements(self.schema_optimization_query)

    def build_target(self, save_mode: str | SaveMode) -> WriteTarget:
        """Build the write target selected by ``query``, ``labels`` or ``relationship``.

        Args:
            save_mode: Top-level save mode (ErrorIfExists, Overwrite, Append)

        Raises:
            ConfigurationError: If not exactly one target is configured, or a
                required option of the selected target is missing
        """
        selected = [
            name
            for name, value in (
                ("query", self.query),
                ("labels", self.labels),
                ("relationship", self.relationship),
            )
            if value is not None and value.strip()
        ]
        if len(selected) != 1:
            raise ConfigurationError(
                "Exactly one of 'query', 'labels' or 'relationship' must be set, "
                f"got {selected or 'none'}"
            )

        mode = job_save_mode(save_mode)
        if self.query is not None and self.query.strip():
            return RawQueryTarget(query=self.query.strip())
        if self.labels is not None and self.labels.strip():
            return NodeTarget(
                node=NodeSpec(
                    labels=self._required_labels(self.labels, "labels"),
                    keys=self.node_keys,
                    properties=self.node_properties,
                    save_mode=mode,
                )
            )
        return RelationshipTarget(relationship=self._build_relationship(mode))

    def _build_relationship(self, mode: SaveMode) -> RelationshipSpec:
        source = NodeSpec(
            labels=self._required_labels(
                self.relationship_source_labels, "relationship.source.labels"
            ),
            keys=self.relationship_source_node_keys,
            properties=self.relationship_source_node_properties,
            save_mode=self.relationship_source_save_mode,
        )
        target = NodeSpec(
            labels=self._required_labels(
                self.relationship_target_labels, "relationship.target.labels"
            ),
            keys=self.relationship_target_node_keys,
            properties=self.relationship_target_node_properties,
            save_mode=self.relationship_target_save_mode,
        )
        return RelationshipSpec(
            type=(self.relationship or "").strip(),
            source=source,
            target=target,
            properties=self.relationship_properties,
            strategy=self.relationship_save_strategy,
            save_mode=mode,
        )

    @staticmethod
    def _required_labels(text: str | None, option: str) -> tuple[str, ...]:
        labels = parse_labels(text)
        if not labels:
            raise ConfigurationError(f"Option '{option}' requires at least one label")
        return labels
