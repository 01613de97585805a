"""Per-table metadata stamping through SQL Server extended properties.

The engine records when a target was last reconciled as an extended
property on the target table.  ``ensure_property_exists`` creates the
property with a placeholder value when missing; ``set_property``
overwrites it.  Together they behave as an idempotent upsert.
"""

from __future__ import annotations

import logging

from merge_engine.errors import MergeEngineError, MetadataRecordingFailure
from merge_engine.executor.base import ExecutionBackend
from merge_engine.parser.identifiers import parse_table_identifier
from merge_engine.sql_toolkit import TableRef, TSqlRenderer

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUE = "new"

_renderer = TSqlRenderer()


def _nstring(value: str) -> str:
    return "N'" + value.replace("'", "''") + "'"


def _level_arguments(table: TableRef) -> str:
    return (
        f"@level0type = N'SCHEMA', @level0name = {_nstring(table.schema or 'dbo')}, "
        f"@level1type = N'TABLE', @level1name = {_nstring(table.name)}"
    )


def render_ensure_property(table: TableRef, key: str, placeholder: str = PLACEHOLDER_VALUE) -> str:
    """Batch adding property *key* to *table* unless it already exists."""
    database = _renderer.quote_identifier(table.catalog or "")
    qualified = _renderer.render_table(table)
    return (
        "IF NOT EXISTS (\n"
        f"    SELECT 1 FROM {database}.sys.extended_properties\n"
        f"    WHERE major_id = OBJECT_ID({_nstring(qualified)}) AND minor_id = 0 AND name = {_nstring(key)}\n"
        ")\n"
        f"    EXEC {database}.sys.sp_addextendedproperty @name = {_nstring(key)}, "
        f"@value = {_nstring(placeholder)}, {_level_arguments(table)};"
    )


def render_set_property(table: TableRef, key: str, value: str) -> str:
    """Batch overwriting property *key* on *table* with *value*."""
    database = _renderer.quote_identifier(table.catalog or "")
    return (
        f"EXEC {database}.sys.sp_updateextendedproperty @name = {_nstring(key)}, "
        f"@value = {_nstring(value)}, {_level_arguments(table)};"
    )


class ExtendedPropertyRecorder:
    """:class:`~merge_engine.executor.base.MetadataRecorder` backed by extended properties.

    Every failure, whether an unusable identifier or a backend error, is
    raised as :class:`MetadataRecordingFailure`.
    """

    def __init__(self, backend: ExecutionBackend) -> None:
        self._backend = backend

    def _table(self, table: str) -> TableRef:
        try:
            ref = parse_table_identifier(table, "Target")
        except MergeEngineError as exc:
            raise MetadataRecordingFailure(str(exc)) from exc
        if ref.is_temporary:
            raise MetadataRecordingFailure(f"{table} is a temporary table; extended properties are not kept.")
        return ref

    def ensure_property_exists(self, table: str, key: str) -> None:
        self._run(render_ensure_property(self._table(table), key), table, key)

    def set_property(self, table: str, key: str, value: str) -> None:
        self._run(render_set_property(self._table(table), key, value), table, key)
        logger.debug("Set %s=%s on %s", key, value, table)

    def _run(self, statement: str, table: str, key: str) -> None:
        try:
            self._backend.execute(statement)
        except Exception as exc:
            raise MetadataRecordingFailure(f"Could not write {key} on {table}: {exc}") from exc
