"""Unit tests for merge_engine.engine.simple_merge."""

from __future__ import annotations

import pytest

from merge_engine.engine import format_threshold, simple_merge
from merge_engine.errors import (
    IntrospectionUnavailableError,
    SchemaError,
    TableNotFoundError,
    ValidationError,
    VarianceExceeded,
)
from merge_engine.models.columns import ColumnInfo
from merge_engine.models.plan import DryRunResult, ReconciliationResult
from merge_engine.models.request import ReconciliationRequest


def _request(**overrides) -> ReconciliationRequest:
    fields = {"target": "db.dbo.Employee", "source": "db.dbo.EmployeeStage", "key_columns": "Id"}
    fields.update(overrides)
    return ReconciliationRequest(**fields)


# ---------------------------------------------------------------------------
# Live runs
# ---------------------------------------------------------------------------


class TestLiveRun:
    def test_commits_and_stamps(self, resolver, backend, recorder, settings):
        backend.changed_rows = 3
        result = simple_merge(_request(), resolver=resolver, backend=backend, recorder=recorder, settings=settings)
        assert isinstance(result, ReconciliationResult)
        assert result.committed
        assert result.rows_changed == 3
        assert ("db.dbo.Employee", "lastUpdate") in recorder.properties
        # No threshold: no pre-count.
        assert backend.methods == ["begin", "execute", "commit"]

    def test_statement_reaches_backend(self, resolver, backend, settings):
        simple_merge(_request(audit_table="db.dbo.EmployeeAudit"), resolver=resolver, backend=backend, settings=settings)
        executed = [sql for method, sql in backend.calls if method == "execute"]
        assert len(executed) == 1
        assert executed[0].startswith("MERGE INTO [db].[dbo].[Employee] AS t\n")
        assert "INTO [db].[dbo].[EmployeeAudit]" in executed[0]

    def test_threshold_exceeded(self, resolver, backend, settings):
        backend.pre_count = 100
        backend.changed_rows = 20
        with pytest.raises(VarianceExceeded) as excinfo:
            simple_merge(_request(threshold="15%"), resolver=resolver, backend=backend, settings=settings)
        assert excinfo.value.variance == 20.0
        assert backend.methods == ["scalar", "begin", "execute", "rollback"]

    def test_threshold_met(self, resolver, backend, settings):
        backend.pre_count = 100
        backend.changed_rows = 20
        result = simple_merge(_request(threshold="25%"), resolver=resolver, backend=backend, settings=settings)
        assert result.committed
        assert result.variance == 20.0

    def test_empty_target_bypasses_threshold(self, resolver, backend, settings):
        backend.pre_count = 0
        backend.changed_rows = 1000
        result = simple_merge(_request(threshold="1%"), resolver=resolver, backend=backend, settings=settings)
        assert result.committed


# ---------------------------------------------------------------------------
# Dry runs
# ---------------------------------------------------------------------------


class TestDryRun:
    def test_returns_statement_and_script(self, resolver, backend, settings):
        result = simple_merge(
            _request(dry_run=True, threshold="15"),
            resolver=resolver,
            backend=backend,
            settings=settings,
        )
        assert isinstance(result, DryRunResult)
        assert result.statement.startswith("MERGE INTO")
        assert result.audit_table_script.startswith("CREATE TABLE [db].[dbo].[Employee_MergeAudit]")
        assert result.threshold == "15%"
        assert result.target_row_count == 100

    def test_executes_nothing(self, resolver, backend, recorder, settings):
        simple_merge(_request(dry_run=True), resolver=resolver, backend=backend, recorder=recorder, settings=settings)
        assert backend.methods == ["scalar"]
        assert recorder.properties == {}


# ---------------------------------------------------------------------------
# Failures before any transaction
# ---------------------------------------------------------------------------


class TestEarlyFailures:
    def test_validation_error_touches_nothing(self, resolver, backend, settings):
        with pytest.raises(ValidationError):
            simple_merge(_request(target="Employee"), resolver=resolver, backend=backend, settings=settings)
        assert backend.calls == []
        assert resolver.resolved == []

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"target": "db.dbo.Missing"}, "Target: db.dbo.Missing not found."),
            ({"source": "db.dbo.Missing"}, "Source: db.dbo.Missing not found."),
            ({"audit_table": "db.dbo.Missing"}, "Output: db.dbo.Missing not found."),
        ],
    )
    def test_missing_tables(self, resolver, backend, settings, overrides, message):
        with pytest.raises(TableNotFoundError) as excinfo:
            simple_merge(_request(**overrides), resolver=resolver, backend=backend, settings=settings)
        assert str(excinfo.value) == message
        assert backend.calls == []

    def test_schema_error_before_transaction(self, resolver, backend, settings):
        resolver.tables["db.dbo.EmployeeStage"] = resolver.tables["db.dbo.EmployeeStage"] + [
            ColumnInfo(name="Bonus", data_type="money")
        ]
        with pytest.raises(SchemaError, match="Source column 'Bonus' missing from target"):
            simple_merge(_request(threshold="10%"), resolver=resolver, backend=backend, settings=settings)
        assert backend.calls == []

    def test_key_missing(self, resolver, backend, settings):
        with pytest.raises(SchemaError, match="join column 'Region' missing from source"):
            simple_merge(_request(key_columns="Id, Region"), resolver=resolver, backend=backend, settings=settings)

    def test_unusable_target_shape(self, resolver, backend, settings):
        resolver.tables["db.dbo.Employee"] = []
        with pytest.raises(IntrospectionUnavailableError):
            simple_merge(_request(), resolver=resolver, backend=backend, settings=settings)
        assert backend.calls == []


class TestFormatThreshold:
    def test_formats(self):
        assert format_threshold(15.0) == "15%"
        assert format_threshold(12.5) == "12.5%"
        assert format_threshold(None) is None
