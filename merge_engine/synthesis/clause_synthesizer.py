"""Conditional clause synthesis for the reconciliation statement.

Produces four independent fragments from the reconciled column model:

* the matched-update clause (omitted when every column is a key),
* the insert clause,
* the not-matched-by-source clause (delete, verbatim update, or omitted),
* the audit OUTPUT projection, together with the matching audit-table DDL.

The fragments are typed values from :mod:`merge_engine.sql_toolkit`; no SQL
text is produced here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from merge_engine.models.columns import ReconciledColumns
from merge_engine.models.request import NotMatchedAction, NotMatchedBySourcePolicy
from merge_engine.sql_toolkit import (
    Assignment,
    ColumnDefinition,
    ColumnRef,
    CreateTable,
    Expression,
    FunctionCall,
    NotExistsIntersect,
    NotMatchedBySourceClause,
    OutputClause,
    Pseudo,
    PseudoColumn,
    RawExpression,
    TableRef,
    WhenMatchedUpdate,
    WhenNotMatchedBySourceDelete,
    WhenNotMatchedBySourceUpdate,
    WhenNotMatchedInsert,
)

logger = logging.getLogger(__name__)

ACTION_TIME_COLUMN = "actionTime"
ACTION_COLUMN = "action"
DELETED_PREFIX = "d_"
INSERTED_PREFIX = "i_"


@dataclass(frozen=True, slots=True)
class MergeClauses:
    """The synthesized WHEN/OUTPUT fragments of one statement."""

    when_matched: WhenMatchedUpdate | None
    when_not_matched: WhenNotMatchedInsert
    when_not_matched_by_source: NotMatchedBySourceClause | None
    output: OutputClause | None


@dataclass(frozen=True, slots=True)
class AuditColumn:
    """One column of the audit projection and its destination definition."""

    name: str
    type_name: str
    nullable: bool
    projection: Expression


# ---------------------------------------------------------------------------
# WHEN clauses
# ---------------------------------------------------------------------------


def build_matched_update(
    columns: ReconciledColumns,
    target_alias: str = "t",
    source_alias: str = "s",
) -> WhenMatchedUpdate | None:
    """Update every shared non-key column when any of them differs.

    The guard compares the source and target value sets with INTERSECT, so
    NULLs compare equal and rows identical in every non-key column are not
    rewritten (and produce no audit row).  Returns ``None`` for all-key
    tables.
    """
    shared = columns.shared_columns
    if not shared:
        return None

    source_refs = tuple(ColumnRef(c.name, source_alias) for c in shared)
    target_refs = tuple(ColumnRef(c.name, target_alias) for c in shared)
    return WhenMatchedUpdate(
        assignments=tuple(Assignment(t, s) for t, s in zip(target_refs, source_refs)),
        condition=NotExistsIntersect(left=source_refs, right=target_refs),
    )


def build_insert(columns: ReconciledColumns, source_alias: str = "s") -> WhenNotMatchedInsert:
    """Insert all source-side columns (keys and shared), in source order."""
    source_columns = columns.source_columns
    return WhenNotMatchedInsert(
        columns=tuple(c.name for c in source_columns),
        values=tuple(ColumnRef(c.name, source_alias) for c in source_columns),
    )


def build_not_matched_by_source(policy: NotMatchedBySourcePolicy) -> NotMatchedBySourceClause | None:
    """Map the policy to its clause; ``IGNORE`` omits the clause entirely."""
    if policy.action is NotMatchedAction.DELETE:
        return WhenNotMatchedBySourceDelete()
    if policy.action is NotMatchedAction.UPDATE:
        return WhenNotMatchedBySourceUpdate(RawExpression(policy.update_expression or ""))
    return None


# ---------------------------------------------------------------------------
# Audit projection
# ---------------------------------------------------------------------------


def audit_columns(columns: ReconciledColumns, include_images: bool) -> list[AuditColumn]:
    """Lay out the audit row: time, action, keys, then pre- and post-images.

    Key values come from the post-image when present, else the pre-image.
    Pre-image (``d_``) and post-image (``i_``) columns cover every non-key
    target column in target order, and are only included when
    *include_images* is set (that is, when a matched-update clause exists).
    """
    layout = [
        AuditColumn(ACTION_TIME_COLUMN, "DATETIME2", False, FunctionCall("SYSDATETIME")),
        AuditColumn(ACTION_COLUMN, "VARCHAR(10)", True, Pseudo(PseudoColumn.MERGE_ACTION)),
    ]
    for key in columns.key_columns:
        layout.append(
            AuditColumn(
                key.name,
                key.type_name,
                True,
                FunctionCall("ISNULL", (ColumnRef(key.name, "inserted"), ColumnRef(key.name, "deleted"))),
            )
        )

    if include_images:
        non_key = columns.audit_columns
        for column in non_key:
            layout.append(
                AuditColumn(DELETED_PREFIX + column.name, column.type_name, True, ColumnRef(column.name, "deleted"))
            )
        for column in non_key:
            layout.append(
                AuditColumn(INSERTED_PREFIX + column.name, column.type_name, True, ColumnRef(column.name, "inserted"))
            )
    return layout


def build_audit_output(columns: ReconciledColumns, destination: TableRef, include_images: bool) -> OutputClause:
    """``OUTPUT ... INTO <destination> (<column list>)`` for every changed row."""
    layout = audit_columns(columns, include_images)
    return OutputClause(
        projections=tuple(c.projection for c in layout),
        into=destination,
        columns=tuple(c.name for c in layout),
    )


def build_audit_table(columns: ReconciledColumns, destination: TableRef, include_images: bool) -> CreateTable:
    """DDL for a default-shaped audit table matching :func:`build_audit_output`."""
    layout = audit_columns(columns, include_images)
    return CreateTable(
        table=destination,
        columns=tuple(ColumnDefinition(c.name, c.type_name or "SQL_VARIANT", c.nullable) for c in layout),
    )


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------


def synthesize_clauses(
    columns: ReconciledColumns,
    policy: NotMatchedBySourcePolicy,
    audit_destination: TableRef | None = None,
    *,
    target_alias: str = "t",
    source_alias: str = "s",
) -> MergeClauses:
    """Build all WHEN/OUTPUT fragments for one statement."""
    when_matched = build_matched_update(columns, target_alias, source_alias)
    output = None
    if audit_destination is not None:
        output = build_audit_output(columns, audit_destination, include_images=when_matched is not None)

    clauses = MergeClauses(
        when_matched=when_matched,
        when_not_matched=build_insert(columns, source_alias),
        when_not_matched_by_source=build_not_matched_by_source(policy),
        output=output,
    )
    logger.debug(
        "Synthesized clauses: matched_update=%s, not_matched_by_source=%s, output=%s",
        when_matched is not None,
        policy.action.value,
        output is not None,
    )
    return clauses
