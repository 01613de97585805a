"""Schema resolvers: table identifier -> ordered list of :class:`ColumnInfo`.

Two implementations of :class:`~merge_engine.executor.base.SchemaResolver`:

* :class:`SqlAlchemySchemaResolver` reads the catalog through SQLAlchemy's
  inspector and works on any dialect SQLAlchemy supports.
* :class:`DescribeFirstResultSetResolver` asks SQL Server for the result
  shape of ``SELECT * FROM <table>`` via
  ``sys.dm_exec_describe_first_result_set``, so views and synonyms resolve
  to exactly the columns a MERGE would see.

The parsing step (:func:`parse_describe_first_result_set`) operates on
pre-fetched rows and is independent of any connection.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import CompileError

from merge_engine.errors import IntrospectionUnavailableError, TableNotFoundError
from merge_engine.executor.base import ExecutionBackend
from merge_engine.models.columns import ColumnInfo
from merge_engine.parser.identifiers import parse_table_identifier
from merge_engine.sql_toolkit import TableRef, TSqlRenderer

logger = logging.getLogger(__name__)

_INTROSPECTION_UNAVAILABLE = (
    "sp_describe_first_result_set cannot be invoked when SET STATISTICS XML, "
    "SET STATISTICS PROFILE or SHOWPLAN is on."
)


# ---------------------------------------------------------------------------
# SQLAlchemy inspector
# ---------------------------------------------------------------------------


class SqlAlchemySchemaResolver:
    """Resolve columns with ``sqlalchemy.inspect``.

    Identifiers are parsed with the same rules as requests; a leading
    database part is folded into the schema argument on SQL Server
    (``"db.schema"``, which the mssql dialect understands) and ignored
    elsewhere.
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    def _locate(self, table: str) -> tuple[str, str | None]:
        ref = parse_table_identifier(table, "Table", require_database=False)
        schema = ref.schema
        if self._connection.dialect.name == "mssql" and ref.catalog:
            schema = f"{ref.catalog}.{schema or 'dbo'}"
        return ref.name, schema

    def exists(self, table: str) -> bool:
        name, schema = self._locate(table)
        return inspect(self._connection).has_table(name, schema=schema)

    def resolve(self, table: str) -> list[ColumnInfo]:
        name, schema = self._locate(table)
        inspector = inspect(self._connection)
        if not inspector.has_table(name, schema=schema):
            raise TableNotFoundError("Table", table)

        columns = [
            ColumnInfo(
                name=col["name"],
                data_type=self._type_name(col["type"]),
                nullable=bool(col.get("nullable", True)),
            )
            for col in inspector.get_columns(name, schema=schema)
        ]
        if not columns:
            raise IntrospectionUnavailableError(f"No columns reported for {table}.")

        logger.debug("Resolved %d column(s) for %s", len(columns), table)
        return columns

    def _type_name(self, type_: Any) -> str:
        try:
            return type_.compile(dialect=self._connection.dialect)
        except CompileError:
            return str(type_.__class__.__name__).upper()


# ---------------------------------------------------------------------------
# SQL Server sys.dm_exec_describe_first_result_set
# ---------------------------------------------------------------------------


def _nstring(value: str) -> str:
    """An ``N'...'`` literal with embedded quotes doubled."""
    return "N'" + value.replace("'", "''") + "'"


def parse_describe_first_result_set(rows: list[Mapping[str, Any]]) -> list[ColumnInfo]:
    """Parse ``sys.dm_exec_describe_first_result_set`` rows into ordered columns.

    Parameters
    ----------
    rows:
        Row mappings with keys ``name``, ``column_ordinal``,
        ``system_type_name``, ``is_nullable`` and optionally ``is_hidden``.

    Raises
    ------
    IntrospectionUnavailableError
        If the rows carry the function's error marker (``name`` NULL with
        ``column_ordinal`` 0), or describe no columns at all.
    """
    columns: list[tuple[int, ColumnInfo]] = []
    for row in rows:
        name = row.get("name")
        ordinal = int(row.get("column_ordinal") or 0)
        if name is None and ordinal == 0:
            raise IntrospectionUnavailableError(_INTROSPECTION_UNAVAILABLE)
        if name is None or row.get("is_hidden"):
            continue
        nullable = row.get("is_nullable")
        columns.append(
            (
                ordinal,
                ColumnInfo(
                    name=str(name),
                    data_type=str(row.get("system_type_name") or ""),
                    nullable=True if nullable is None else bool(nullable),
                ),
            )
        )

    if not columns:
        raise IntrospectionUnavailableError("The result set description is empty.")

    return [info for _, info in sorted(columns, key=lambda pair: pair[0])]


class DescribeFirstResultSetResolver:
    """SQL Server resolver built on an :class:`ExecutionBackend`.

    Session-scoped ``#temp`` tables are looked up in ``tempdb``.
    """

    def __init__(self, backend: ExecutionBackend) -> None:
        self._backend = backend
        self._renderer = TSqlRenderer()

    def _render(self, table: str) -> tuple[TableRef, str]:
        ref = parse_table_identifier(table, "Table")
        return ref, self._renderer.render_table(ref)

    def exists(self, table: str) -> bool:
        ref, rendered = self._render(table)
        lookup = f"tempdb..{rendered}" if ref.is_temporary else rendered
        return self._backend.scalar(f"SELECT OBJECT_ID({_nstring(lookup)})") is not None

    def resolve(self, table: str) -> list[ColumnInfo]:
        if not self.exists(table):
            raise TableNotFoundError("Table", table)
        _, rendered = self._render(table)
        query = (
            "SELECT name, column_ordinal, system_type_name, is_nullable, is_hidden "
            f"FROM sys.dm_exec_describe_first_result_set({_nstring('SELECT * FROM ' + rendered)}, NULL, 0) "
            "ORDER BY column_ordinal"
        )
        columns = parse_describe_first_result_set(self._backend.fetch_rows(query))
        logger.debug("Described %d column(s) for %s", len(columns), table)
        return columns
