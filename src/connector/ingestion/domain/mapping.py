"""Key/property mapping between tabular columns and graph names.

Pure functions: parsing of compact "column:property" strings, flattening
of nested-map columns and resolution of mapped values from a row.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from ingestion.domain.exceptions import MalformedMappingError, MissingColumnError
from ingestion.domain.value_objects import FlattenedRow, KeyMapping, Row


def parse_mapping(text: str | None) -> KeyMapping:
    """Parse a comma-separated mapping string.

    "a:b" maps column a to graph name b, a bare "a" maps a to itself.
    An absent or blank string is an empty mapping.

    Args:
        text: Mapping string such as "name:fullName,age"

    Returns:
        KeyMapping preserving token order

    Raises:
        MalformedMappingError: If a token is empty, has more than one ':',
            has an empty side, or repeats a column or a property
    """
    if text is None or not text.strip():
        return KeyMapping()

    pairs: list[tuple[str, str]] = []
    seen: set[str] = set()
    targets: set[str] = set()
    for token in text.split(","):
        parts = [part.strip() for part in token.split(":")]
        if len(parts) > 2:
            raise MalformedMappingError(
                f"Mapping entry '{token.strip()}' contains more than one ':'",
                mapping=text,
            )
        if any(not part for part in parts):
            raise MalformedMappingError(
                f"Empty mapping entry in '{text}'",
                mapping=text,
            )
        column = parts[0]
        target = parts[-1]
        if column in seen:
            raise MalformedMappingError(
                f"Column '{column}' is mapped more than once",
                mapping=text,
            )
        if target in targets:
            raise MalformedMappingError(
                f"Property '{target}' is mapped more than once",
                mapping=text,
            )
        seen.add(column)
        targets.add(target)
        pairs.append((column, target))

    return KeyMapping(pairs=tuple(pairs))


def parse_labels(text: str | None) -> tuple[str, ...]:
    """Split a colon-joined label list (":Person:Customer" or "Person:Customer")."""
    if text is None:
        return ()
    return tuple(label.strip() for label in text.split(":") if label.strip())


def flatten(row: Row) -> FlattenedRow:
    """Replace nested-map columns by dotted-path scalar columns.

    {"lives_in": {"city": "NY"}} becomes {"lives_in.city": "NY"}. Lists and
    other values pass through unchanged.
    """
    flat: FlattenedRow = {}
    _flatten_into(flat, row, "")
    return flat


def _flatten_into(flat: FlattenedRow, values: Mapping[str, Any], prefix: str) -> None:
    for key, value in values.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            _flatten_into(flat, value, f"{name}.")
        else:
            flat[name] = value


def resolve(mapping: KeyMapping, row: FlattenedRow) -> dict[str, Any]:
    """Map row values to graph names.

    Mapped columns are checked against the schema at plan time by
    ``validate_columns``. A column the row itself lacks (an omitted
    optional column, or a leaf of a null struct) resolves to None.
    """
    return {target: row.get(column) for column, target in mapping.pairs}


def validate_columns(mapping: KeyMapping, columns: Iterable[str]) -> None:
    """Check at plan time that every mapped column exists.

    Raises:
        MissingColumnError: For the first mapped column not in ``columns``
    """
    available = list(columns)
    known = set(available)
    for column in mapping.columns:
        if column not in known:
            raise MissingColumnError(column, available)
