"""Unit tests for merge_engine.executor.schema_introspector (describe-first-result-set path)."""

from __future__ import annotations

import pytest

from merge_engine.errors import IntrospectionUnavailableError, TableNotFoundError
from merge_engine.executor.schema_introspector import (
    DescribeFirstResultSetResolver,
    parse_describe_first_result_set,
)


def _row(name, ordinal, type_name="int", nullable=True, hidden=False):
    return {
        "name": name,
        "column_ordinal": ordinal,
        "system_type_name": type_name,
        "is_nullable": nullable,
        "is_hidden": hidden,
    }


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseDescribeFirstResultSet:
    def test_ordered_columns(self):
        columns = parse_describe_first_result_set(
            [_row("Name", 2, "varchar(50)"), _row("Id", 1, "int", nullable=False)]
        )
        assert [(c.name, c.data_type, c.nullable) for c in columns] == [
            ("Id", "int", False),
            ("Name", "varchar(50)", True),
        ]

    def test_hidden_columns_skipped(self):
        columns = parse_describe_first_result_set([_row("Id", 1), _row("rowguid", 2, hidden=True)])
        assert [c.name for c in columns] == ["Id"]

    def test_error_row_means_unavailable(self):
        with pytest.raises(IntrospectionUnavailableError, match="SET STATISTICS XML"):
            parse_describe_first_result_set([_row(None, 0, None)])

    def test_empty_means_unavailable(self):
        with pytest.raises(IntrospectionUnavailableError):
            parse_describe_first_result_set([])


# ---------------------------------------------------------------------------
# Resolver over a backend
# ---------------------------------------------------------------------------


class _CatalogBackend:
    """Answers OBJECT_ID lookups and describe queries from canned data."""

    def __init__(self, object_id=1, rows=None):
        self.object_id = object_id
        self.rows = rows or []
        self.statements: list[str] = []

    def scalar(self, statement):
        self.statements.append(statement)
        return self.object_id

    def fetch_rows(self, statement):
        self.statements.append(statement)
        return self.rows


class TestDescribeFirstResultSetResolver:
    def test_exists_uses_object_id(self):
        backend = _CatalogBackend()
        assert DescribeFirstResultSetResolver(backend).exists("db.dbo.Employee")
        assert backend.statements == ["SELECT OBJECT_ID(N'[db].[dbo].[Employee]')"]

    def test_missing_object(self):
        assert not DescribeFirstResultSetResolver(_CatalogBackend(object_id=None)).exists("db.dbo.Nope")

    def test_temp_table_looked_up_in_tempdb(self):
        backend = _CatalogBackend()
        DescribeFirstResultSetResolver(backend).exists("#stage")
        assert backend.statements == ["SELECT OBJECT_ID(N'tempdb..[#stage]')"]

    def test_quotes_escaped(self):
        backend = _CatalogBackend()
        DescribeFirstResultSetResolver(backend).exists("db.dbo.[O'Brien]")
        assert backend.statements == ["SELECT OBJECT_ID(N'[db].[dbo].[O''Brien]')"]

    def test_resolve(self):
        backend = _CatalogBackend(rows=[_row("Id", 1, nullable=False), _row("Name", 2, "nvarchar(20)")])
        columns = DescribeFirstResultSetResolver(backend).resolve("db.dbo.Employee")
        assert [c.name for c in columns] == ["Id", "Name"]
        assert "sys.dm_exec_describe_first_result_set(N'SELECT * FROM [db].[dbo].[Employee]', NULL, 0)" in (
            backend.statements[-1]
        )

    def test_resolve_missing(self):
        with pytest.raises(TableNotFoundError):
            DescribeFirstResultSetResolver(_CatalogBackend(object_id=None)).resolve("db.dbo.Nope")
