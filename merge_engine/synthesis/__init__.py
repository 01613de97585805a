"""Reconciliation statement synthesis."""

from __future__ import annotations

from merge_engine.synthesis.clause_synthesizer import (
    MergeClauses,
    audit_columns,
    build_audit_output,
    build_audit_table,
    build_insert,
    build_matched_update,
    build_not_matched_by_source,
    synthesize_clauses,
)
from merge_engine.synthesis.column_reconciler import reconcile
from merge_engine.synthesis.predicate_builder import build_join_predicate, build_rank_projection, key_equality
from merge_engine.synthesis.statement_assembler import (
    assemble,
    build_count_query,
    build_merge_statement,
    default_audit_table,
)

__all__ = [
    "MergeClauses",
    "assemble",
    "audit_columns",
    "build_audit_output",
    "build_audit_table",
    "build_count_query",
    "build_insert",
    "build_join_predicate",
    "build_matched_update",
    "build_merge_statement",
    "build_not_matched_by_source",
    "build_rank_projection",
    "default_audit_table",
    "key_equality",
    "reconcile",
    "synthesize_clauses",
]
