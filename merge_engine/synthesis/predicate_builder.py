"""Key-join predicate construction.

Nullable key columns get a null-safe comparison so that a NULL key in the
target and a NULL key in the source match each other instead of producing
a delete/insert pair.

In duplicate-tolerant mode both relations carry a per-key row number and
the predicate also requires equal row numbers.  Rows are numbered by
physical location, so which duplicate pairs with which is unspecified;
only the one-to-one pairing within a key group is guaranteed.
"""

from __future__ import annotations

from collections.abc import Sequence

from merge_engine.models.columns import ColumnDescriptor
from merge_engine.sql_toolkit import (
    Alias,
    And,
    ColumnRef,
    Equals,
    Expression,
    IsNull,
    Or,
    Pseudo,
    PseudoColumn,
    RowNumber,
)

DEFAULT_RANK_COLUMN = "_merge_rn"


def key_equality(column: ColumnDescriptor, target_alias: str = "t", source_alias: str = "s") -> Expression:
    """Equality test for one key column, null-safe when the column is nullable."""
    target_ref = ColumnRef(column.name, target_alias)
    source_ref = ColumnRef(column.name, source_alias)
    equals = Equals(target_ref, source_ref)
    if not column.nullable:
        return equals
    return Or((equals, And((IsNull(target_ref), IsNull(source_ref)))))


def build_join_predicate(
    key_columns: Sequence[ColumnDescriptor],
    duplicate_tolerant: bool = False,
    *,
    rank_column: str = DEFAULT_RANK_COLUMN,
    target_alias: str = "t",
    source_alias: str = "s",
) -> And:
    """Conjoin the per-key tests, in key order.

    Raises
    ------
    ValueError
        If *key_columns* is empty.
    """
    if not key_columns:
        raise ValueError("A join predicate needs at least one key column.")

    ordered = sorted(key_columns, key=lambda c: c.key_position or 0)
    conjuncts: list[Expression] = [key_equality(c, target_alias, source_alias) for c in ordered]

    if duplicate_tolerant:
        conjuncts.append(Equals(ColumnRef(rank_column, target_alias), ColumnRef(rank_column, source_alias)))

    return And(tuple(conjuncts))


def build_rank_projection(key_columns: Sequence[ColumnDescriptor], rank_column: str = DEFAULT_RANK_COLUMN) -> Alias:
    """``ROW_NUMBER() OVER (PARTITION BY <keys> ORDER BY <physical locator>) AS <rank_column>``"""
    ordered = sorted(key_columns, key=lambda c: c.key_position or 0)
    return Alias(
        RowNumber(
            partition_by=tuple(ColumnRef(c.name) for c in ordered),
            order_by=Pseudo(PseudoColumn.PHYSICAL_LOCATOR),
        ),
        rank_column,
    )
