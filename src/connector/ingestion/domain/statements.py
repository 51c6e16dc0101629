"""Typed intermediate representation of Cypher write statements.

Statements are built from small immutable clause objects and rendered to
text only at the edge, so compiled writes can be inspected clause by
clause instead of by matching generated strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

EVENTS_PARAMETER = "events"
EVENT_VARIABLE = "event"
SCRIPT_RESULT_PARAMETER = "scriptResult"
SCRIPT_RESULT_VARIABLE = "scriptResult"


def quote(name: str) -> str:
    """Backtick-quote a label, type or property name unless it is a plain identifier."""
    if _PLAIN_IDENTIFIER.match(name):
        return name
    escaped = name.replace("`", "``")
    return f"`{escaped}`"


def property_access(base: str, *path: str) -> str:
    """Render a property lookup such as event.keys.`lives_in.city`."""
    return ".".join([base, *(quote(part) for part in path)])


class Verb(str, Enum):
    """Cypher verb used for a node or relationship clause."""

    CREATE = "CREATE"
    MERGE = "MERGE"
    MATCH = "MATCH"


class Clause(Protocol):
    """A renderable statement clause."""

    def render(self) -> str: ...


@dataclass(frozen=True)
class NodePattern:
    """Node pattern with labels and key properties bound to expressions.

    Attributes:
        variable: Variable the node is bound to
        labels: Node labels in order
        key_properties: (property, expression) pairs written inside the braces
    """

    variable: str
    labels: tuple[str, ...] = ()
    key_properties: tuple[tuple[str, str], ...] = ()

    def render(self) -> str:
        labels = "".join(f":{quote(label)}" for label in self.labels)
        if not self.key_properties:
            return f"({self.variable}{labels})"
        keys = ", ".join(
            f"{quote(prop)}: {expression}" for prop, expression in self.key_properties
        )
        return f"({self.variable}{labels} {{{keys}}})"


@dataclass(frozen=True)
class RelationshipPattern:
    """Directed relationship pattern between two bound node variables."""

    variable: str
    type: str
    source_variable: str
    target_variable: str

    def render(self) -> str:
        return (
            f"({self.source_variable})"
            f"-[{self.variable}:{quote(self.type)}]->"
            f"({self.target_variable})"
        )


@dataclass(frozen=True)
class With:
    expression: str
    alias: str

    def render(self) -> str:
        return f"WITH {self.expression} AS {self.alias}"


@dataclass(frozen=True)
class Unwind:
    parameter: str
    alias: str

    def render(self) -> str:
        return f"UNWIND ${self.parameter} AS {self.alias}"


@dataclass(frozen=True)
class NodeClause:
    verb: Verb
    pattern: NodePattern

    def render(self) -> str:
        return f"{self.verb.value} {self.pattern.render()}"


@dataclass(frozen=True)
class RelationshipClause:
    verb: Verb
    pattern: RelationshipPattern

    def render(self) -> str:
        return f"{self.verb.value} {self.pattern.render()}"


@dataclass(frozen=True)
class SetProperties:
    """SET <variable> += <expression> (adds properties without removing others)."""

    variable: str
    expression: str

    def render(self) -> str:
        return f"SET {self.variable} += {self.expression}"


@dataclass(frozen=True)
class RawClause:
    """Caller-supplied Cypher appended verbatim."""

    text: str

    def render(self) -> str:
        return self.text


StatementClause = Union[
    With, Unwind, NodeClause, RelationshipClause, SetProperties, RawClause
]


@dataclass(frozen=True)
class Statement:
    """An ordered sequence of clauses and the parameters they bind.

    Attributes:
        clauses: Clauses in execution order
        parameters: Names of the parameters the statement expects
    """

    clauses: tuple[StatementClause, ...]
    parameters: tuple[str, ...] = (EVENTS_PARAMETER, SCRIPT_RESULT_PARAMETER)

    def render(self) -> str:
        return "\n".join(clause.render() for clause in self.clauses)

    def clauses_of(self, clause_type: type) -> list[StatementClause]:
        """All clauses of one type, in order."""
        return [clause for clause in self.clauses if isinstance(clause, clause_type)]


def split_statements(text: str | None) -> list[str]:
    """Split a ';'-separated script into statements, dropping blank entries."""
    if text is None:
        return []
    return [part.strip() for part in text.split(";") if part.strip()]
