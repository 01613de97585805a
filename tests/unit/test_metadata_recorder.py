"""Unit tests for merge_engine.metadata.recorder."""

from __future__ import annotations

import pytest

from merge_engine.errors import MetadataRecordingFailure
from merge_engine.metadata import ExtendedPropertyRecorder, render_ensure_property, render_set_property
from merge_engine.sql_toolkit import TableRef

_TABLE = TableRef("db", "dbo", "Employee")


class TestRendering:
    def test_ensure_property(self):
        sql = render_ensure_property(_TABLE, "lastUpdate")
        assert sql.startswith("IF NOT EXISTS (\n    SELECT 1 FROM [db].sys.extended_properties\n")
        assert "major_id = OBJECT_ID(N'[db].[dbo].[Employee]')" in sql
        assert "name = N'lastUpdate'" in sql
        assert sql.endswith(
            "EXEC [db].sys.sp_addextendedproperty @name = N'lastUpdate', @value = N'new', "
            "@level0type = N'SCHEMA', @level0name = N'dbo', @level1type = N'TABLE', @level1name = N'Employee';"
        )

    def test_set_property(self):
        assert render_set_property(_TABLE, "lastUpdate", "2026-01-02 03:04:05.678") == (
            "EXEC [db].sys.sp_updateextendedproperty @name = N'lastUpdate', @value = N'2026-01-02 03:04:05.678', "
            "@level0type = N'SCHEMA', @level0name = N'dbo', @level1type = N'TABLE', @level1name = N'Employee';"
        )

    def test_default_schema_is_dbo(self):
        assert "@level0name = N'dbo'" in render_set_property(TableRef("db", None, "t"), "k", "v")

    def test_quotes_escaped(self):
        assert "@level1name = N'O''Brien'" in render_set_property(TableRef("db", "dbo", "O'Brien"), "k", "v")


class _Backend:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.statements: list[str] = []

    def execute(self, statement: str) -> int:
        self.statements.append(statement)
        if self.error is not None:
            raise self.error
        return -1


class TestExtendedPropertyRecorder:
    def test_upsert_sequence(self):
        backend = _Backend()
        recorder = ExtendedPropertyRecorder(backend)
        recorder.ensure_property_exists("db.dbo.Employee", "lastUpdate")
        recorder.set_property("db.dbo.Employee", "lastUpdate", "2026-01-02 03:04:05.678")
        assert backend.statements[0].startswith("IF NOT EXISTS")
        assert "sp_updateextendedproperty" in backend.statements[1]

    def test_backend_error_wrapped(self):
        recorder = ExtendedPropertyRecorder(_Backend(RuntimeError("permission denied")))
        with pytest.raises(MetadataRecordingFailure, match="permission denied"):
            recorder.set_property("db.dbo.Employee", "lastUpdate", "x")

    def test_temp_table_rejected(self):
        with pytest.raises(MetadataRecordingFailure, match="temporary"):
            ExtendedPropertyRecorder(_Backend()).ensure_property_exists("#stage", "lastUpdate")

    def test_bad_identifier_wrapped(self):
        with pytest.raises(MetadataRecordingFailure):
            ExtendedPropertyRecorder(_Backend()).ensure_property_exists("Employee", "lastUpdate")
