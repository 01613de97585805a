"""Statement assembly: fragments -> one rendered reconciliation plan.

This is the rendering boundary.  Everything upstream produces typed
fragments; here they are composed into a :class:`MergeStatement`, rendered
once through the T-SQL renderer, and checked for bind-variable leakage
before being sealed into a :class:`ReconciliationPlan`.

Statement layout::

    [WITH [target] AS (...), [source] AS (...)]
    MERGE INTO <target> AS t USING <source> AS s ON <key predicate>
    [WHEN MATCHED AND <values differ> THEN UPDATE ...]
    WHEN NOT MATCHED BY TARGET THEN INSERT ...
    [WHEN NOT MATCHED BY SOURCE THEN DELETE | UPDATE ...]
    [OUTPUT ... INTO <audit table> (...)];
"""

from __future__ import annotations

import logging

from merge_engine.config import Settings
from merge_engine.errors import ValidationError
from merge_engine.models.columns import ReconciledColumns
from merge_engine.models.plan import ReconciliationPlan
from merge_engine.models.request import ReconciliationRequest
from merge_engine.parser.request_validator import ValidatedRequest
from merge_engine.parser.statement_guard import assert_no_bind_marker_leakage
from merge_engine.sql_toolkit import (
    CommonTableExpression,
    Expression,
    FunctionCall,
    MergeStatement,
    RawExpression,
    Select,
    SqlRenderer,
    Star,
    TableRef,
    TSqlRenderer,
)
from merge_engine.synthesis.clause_synthesizer import build_audit_table, synthesize_clauses
from merge_engine.synthesis.predicate_builder import build_join_predicate, build_rank_projection

logger = logging.getLogger(__name__)

TARGET_CTE = "target"
SOURCE_CTE = "source"


def default_audit_table(target: TableRef, settings: Settings) -> TableRef:
    """``<target><audit_table_suffix>`` in the target's database and schema."""
    return target.with_name(target.name + settings.audit_table_suffix)


def build_count_query(target: TableRef, target_filter: str | None) -> Select:
    """``SELECT COUNT_BIG(*) FROM <target> [WHERE <filter>]``"""
    where = RawExpression(target_filter) if target_filter else None
    return Select(projections=(FunctionCall("COUNT_BIG", (Star(),)),), source=target, where=where)


def build_merge_statement(
    request: ReconciliationRequest,
    validated: ValidatedRequest,
    columns: ReconciledColumns,
    settings: Settings,
) -> MergeStatement:
    """Compose the typed MERGE statement for *request*."""
    keys = columns.key_columns
    duplicate_tolerant = request.duplicate_tolerant

    if duplicate_tolerant and columns.get(settings.rank_column) is not None:
        raise ValidationError(
            f"Column {settings.rank_column!r} already exists; it is reserved for duplicate-key pairing."
        )

    on = build_join_predicate(keys, duplicate_tolerant, rank_column=settings.rank_column)
    clauses = synthesize_clauses(columns, request.when_not_matched_by_source, validated.audit_table)

    target_filter: Expression | None = RawExpression(request.target_filter) if request.target_filter else None
    ctes: list[CommonTableExpression] = []
    target: TableRef | str = validated.target
    source: TableRef | str = validated.source

    if target_filter is not None or duplicate_tolerant:
        projections: tuple[Expression, ...] = (Star(),)
        if duplicate_tolerant:
            projections += (build_rank_projection(keys, settings.rank_column),)
        ctes.append(CommonTableExpression(TARGET_CTE, Select(projections, validated.target, target_filter)))
        target = TARGET_CTE

    if duplicate_tolerant:
        ctes.append(
            CommonTableExpression(
                SOURCE_CTE,
                Select((Star(), build_rank_projection(keys, settings.rank_column)), validated.source),
            )
        )
        source = SOURCE_CTE

    return MergeStatement(
        target=target,
        source=source,
        on=on,
        ctes=tuple(ctes),
        when_matched=clauses.when_matched,
        when_not_matched=clauses.when_not_matched,
        when_not_matched_by_source=clauses.when_not_matched_by_source,
        output=clauses.output,
    )


def assemble(
    request: ReconciliationRequest,
    validated: ValidatedRequest,
    columns: ReconciledColumns,
    settings: Settings | None = None,
    *,
    renderer: SqlRenderer | None = None,
) -> ReconciliationPlan:
    """Render the statement (and, for dry runs, the audit-table script).

    *renderer* defaults to :class:`TSqlRenderer`.

    Raises
    ------
    SynthesisHazard
        If the rendered statement begins with a bind-variable marker.
    """
    settings = settings or Settings()
    renderer = renderer or TSqlRenderer()

    merge = build_merge_statement(request, validated, columns, settings)
    statement = renderer.render(merge)
    assert_no_bind_marker_leakage(statement)

    count_statement = renderer.render(build_count_query(validated.target, request.target_filter))

    audit_table_script = None
    if request.dry_run:
        destination = validated.audit_table or default_audit_table(validated.target, settings)
        audit_table_script = renderer.render(
            build_audit_table(columns, destination, include_images=merge.when_matched is not None)
        )

    logger.info(
        "Assembled merge %s <- %s (%d key, %d updatable column(s))",
        validated.target.fully_qualified,
        validated.source.fully_qualified,
        len(columns.key_columns),
        len(columns.shared_columns),
    )

    return ReconciliationPlan(
        target=request.target,
        statement=statement,
        count_statement=count_statement,
        audit_table=request.audit_table,
        audit_table_script=audit_table_script,
        has_matched_update=merge.when_matched is not None,
    )
