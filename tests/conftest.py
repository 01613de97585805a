"""Shared fixtures: in-memory backend, resolver and recorder fakes."""

from __future__ import annotations

from typing import Any

import pytest

from merge_engine.config import Settings
from merge_engine.errors import TableNotFoundError
from merge_engine.models.columns import ColumnInfo

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeBackend:
    """Records every call; returns scripted counts.

    ``calls`` holds ``(method, statement)`` tuples in call order.
    """

    def __init__(self, *, pre_count: int | None = 100, changed_rows: int = 0) -> None:
        self.pre_count = pre_count
        self.changed_rows = changed_rows
        self.execute_error: BaseException | None = None
        self.commit_error: Exception | None = None
        self.rows: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str | None]] = []

    @property
    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    def execute(self, statement: str) -> int:
        self.calls.append(("execute", statement))
        if self.execute_error is not None:
            raise self.execute_error
        return self.changed_rows

    def scalar(self, statement: str) -> Any:
        self.calls.append(("scalar", statement))
        return self.pre_count

    def fetch_rows(self, statement: str) -> list[dict[str, Any]]:
        self.calls.append(("fetch_rows", statement))
        return self.rows

    def begin(self) -> None:
        self.calls.append(("begin", None))

    def commit(self) -> None:
        self.calls.append(("commit", None))
        if self.commit_error is not None:
            raise self.commit_error

    def rollback(self) -> None:
        self.calls.append(("rollback", None))


class FakeResolver:
    """Maps table identifiers to column lists; unknown tables do not exist."""

    def __init__(self, tables: dict[str, list[ColumnInfo]] | None = None) -> None:
        self.tables: dict[str, list[ColumnInfo]] = dict(tables or {})
        self.resolved: list[str] = []

    def exists(self, table: str) -> bool:
        return table in self.tables

    def resolve(self, table: str) -> list[ColumnInfo]:
        self.resolved.append(table)
        if table not in self.tables:
            raise TableNotFoundError("Table", table)
        return self.tables[table]


class FakeRecorder:
    """Keeps properties in a dict; can be told to fail."""

    def __init__(self) -> None:
        self.properties: dict[tuple[str, str], str] = {}
        self.error: Exception | None = None

    def ensure_property_exists(self, table: str, key: str) -> None:
        if self.error is not None:
            raise self.error
        self.properties.setdefault((table, key), "new")

    def set_property(self, table: str, key: str, value: str) -> None:
        if self.error is not None:
            raise self.error
        self.properties[(table, key)] = value


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def recorder() -> FakeRecorder:
    return FakeRecorder()


@pytest.fixture()
def employee_columns() -> dict[str, list[ColumnInfo]]:
    """Target ``db.dbo.Employee`` and source ``db.dbo.EmployeeStage`` shapes."""
    target = [
        ColumnInfo(name="Id", data_type="int", nullable=False),
        ColumnInfo(name="Name", data_type="varchar(50)", nullable=True),
        ColumnInfo(name="Salary", data_type="decimal(10,2)", nullable=True),
    ]
    source = [
        ColumnInfo(name="Id", data_type="int", nullable=False),
        ColumnInfo(name="Name", data_type="varchar(50)", nullable=True),
        ColumnInfo(name="Salary", data_type="decimal(10,2)", nullable=True),
    ]
    return {"db.dbo.Employee": target, "db.dbo.EmployeeStage": source}


@pytest.fixture()
def resolver(employee_columns: dict[str, list[ColumnInfo]]) -> FakeResolver:
    tables = dict(employee_columns)
    tables["db.dbo.EmployeeAudit"] = []
    return FakeResolver(tables)
