"""SQL toolkit shared types.

Every statement the engine produces is first built as a tree of the frozen
values below and only turned into text by a :class:`SqlRenderer`.  Consumer
code (the synthesis package) composes these types exclusively; it never
concatenates SQL strings.

Caller-supplied expressions (target filters, not-matched-by-source update
assignments) enter the tree as :class:`RawExpression` and are rendered
verbatim -- they are the only untyped leaves.

ZERO dependency on any database driver.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Union

# ---------------------------------------------------------------------------
# Dialect
# ---------------------------------------------------------------------------


class Dialect(str, enum.Enum):
    """Supported SQL dialects."""

    TSQL = "tsql"


# ---------------------------------------------------------------------------
# Reference Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TableRef:
    """A table reference, normally three-part (``database.schema.table``).

    Session-scoped temporary tables (``#name``) may omit the database and
    schema parts.  Immutable; hashable via *frozen=True*.
    """

    catalog: str | None = None
    schema: str | None = None
    name: str = ""

    @property
    def is_temporary(self) -> bool:
        """Return True for session-scoped ``#temp`` tables."""
        return self.name.startswith("#")

    @property
    def fully_qualified(self) -> str:
        """Return ``catalog.schema.name``, keeping empty middle parts as ``..``."""
        if self.catalog is None and self.schema is None:
            return self.name
        return ".".join([self.catalog or "", self.schema or "", self.name])

    def with_name(self, name: str) -> TableRef:
        """Return a copy with the object name replaced."""
        return TableRef(catalog=self.catalog, schema=self.schema, name=name)

    def __str__(self) -> str:  # pragma: no cover
        return self.fully_qualified


class PseudoColumn(str, enum.Enum):
    """Engine-provided values that are not columns of any relation."""

    MERGE_ACTION = "merge_action"
    PHYSICAL_LOCATOR = "physical_locator"


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColumnRef:
    """A column reference, optionally qualified by an alias or pseudo-table."""

    name: str
    table: str | None = None


@dataclass(frozen=True, slots=True)
class Star:
    """``*``"""


@dataclass(frozen=True, slots=True)
class Pseudo:
    """A :class:`PseudoColumn` placeholder resolved by the renderer."""

    kind: PseudoColumn


@dataclass(frozen=True, slots=True)
class RawExpression:
    """Caller-supplied SQL text rendered verbatim."""

    sql: str


@dataclass(frozen=True, slots=True)
class FunctionCall:
    """``NAME(arg, ...)``"""

    name: str
    args: tuple[Expression, ...] = ()


@dataclass(frozen=True, slots=True)
class Equals:
    left: Expression
    right: Expression


@dataclass(frozen=True, slots=True)
class IsNull:
    operand: Expression


@dataclass(frozen=True, slots=True)
class And:
    operands: tuple[Expression, ...]


@dataclass(frozen=True, slots=True)
class Or:
    operands: tuple[Expression, ...]


@dataclass(frozen=True, slots=True)
class RowNumber:
    """``ROW_NUMBER() OVER (PARTITION BY ... ORDER BY ...)``"""

    partition_by: tuple[Expression, ...]
    order_by: Expression


@dataclass(frozen=True, slots=True)
class Alias:
    """``<expression> AS <alias>`` in a projection list."""

    expression: Expression
    alias: str


@dataclass(frozen=True, slots=True)
class Select:
    """A single-table SELECT used for CTE bodies, counts and set comparison."""

    projections: tuple[Expression, ...]
    source: TableRef | None = None
    where: Expression | None = None


@dataclass(frozen=True, slots=True)
class NotExistsIntersect:
    """``NOT EXISTS(SELECT <left> INTERSECT SELECT <right>)``

    INTERSECT treats NULLs as equal, which makes this the null-safe
    "row values differ" test for a set of columns.
    """

    left: tuple[Expression, ...]
    right: tuple[Expression, ...]


Expression = Union[
    ColumnRef,
    Star,
    Pseudo,
    RawExpression,
    FunctionCall,
    Equals,
    IsNull,
    And,
    Or,
    RowNumber,
    Alias,
    NotExistsIntersect,
]


# ---------------------------------------------------------------------------
# Statements and clauses
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CommonTableExpression:
    """``[name] AS (<query>)``"""

    name: str
    query: Select


@dataclass(frozen=True, slots=True)
class Assignment:
    column: ColumnRef
    value: Expression


@dataclass(frozen=True, slots=True)
class WhenMatchedUpdate:
    """``WHEN MATCHED [AND <condition>] THEN UPDATE SET ...``"""

    assignments: tuple[Assignment, ...]
    condition: Expression | None = None


@dataclass(frozen=True, slots=True)
class WhenNotMatchedInsert:
    """``WHEN NOT MATCHED BY TARGET THEN INSERT (...) VALUES (...)``"""

    columns: tuple[str, ...]
    values: tuple[Expression, ...]


@dataclass(frozen=True, slots=True)
class WhenNotMatchedBySourceDelete:
    """``WHEN NOT MATCHED BY SOURCE THEN DELETE``"""


@dataclass(frozen=True, slots=True)
class WhenNotMatchedBySourceUpdate:
    """``WHEN NOT MATCHED BY SOURCE THEN UPDATE SET <assignments>``"""

    assignments: RawExpression


NotMatchedBySourceClause = Union[WhenNotMatchedBySourceDelete, WhenNotMatchedBySourceUpdate]


@dataclass(frozen=True, slots=True)
class OutputClause:
    """``OUTPUT <projections> INTO <destination> (<columns>)``"""

    projections: tuple[Expression, ...]
    into: TableRef
    columns: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class MergeStatement:
    """A complete reconciliation statement.

    ``target`` / ``source`` are either a table reference or the name of a
    CTE listed in ``ctes``.
    """

    target: TableRef | str
    source: TableRef | str
    on: Expression
    target_alias: str = "t"
    source_alias: str = "s"
    ctes: tuple[CommonTableExpression, ...] = ()
    when_matched: WhenMatchedUpdate | None = None
    when_not_matched: WhenNotMatchedInsert | None = None
    when_not_matched_by_source: NotMatchedBySourceClause | None = None
    output: OutputClause | None = None


@dataclass(frozen=True, slots=True)
class ColumnDefinition:
    name: str
    type_name: str
    nullable: bool = True


@dataclass(frozen=True, slots=True)
class CreateTable:
    table: TableRef
    columns: tuple[ColumnDefinition, ...] = field(default_factory=tuple)


Statement = Union[MergeStatement, Select, CreateTable]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SqlToolkitError(Exception):
    """Base exception for all SQL toolkit errors."""


class SqlRenderError(SqlToolkitError):
    """Raised when a fragment cannot be rendered in the requested dialect."""
