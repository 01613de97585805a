"""Reconciliation plan and result models.

A :class:`ReconciliationPlan` is built once per invocation from a request
and the reconciled columns, consumed exactly once by the safety gate (or
returned as a :class:`DryRunResult`), and never persisted.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ReconciliationPlan(BaseModel):
    """The synthesized, immutable artifact handed to the executor."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., min_length=1, description="Target identifier as supplied by the caller.")
    statement: str = Field(..., min_length=1, description="Rendered MERGE statement.")
    count_statement: str = Field(..., min_length=1, description="Rendered target pre-count query.")
    audit_table: str | None = Field(default=None, description="Audit destination identifier, if any.")
    audit_table_script: str | None = Field(
        default=None,
        description="CREATE TABLE script for a default-shaped audit table (dry run only).",
    )
    has_matched_update: bool = Field(
        default=True,
        description="False when every column is part of the key.",
    )
    pre_count: int | None = Field(
        default=None,
        ge=0,
        description="Target row count (after filtering) taken before execution.",
    )

    def with_pre_count(self, pre_count: int) -> ReconciliationPlan:
        """Return a copy carrying the target pre-count."""
        return self.model_copy(update={"pre_count": pre_count})


class ExecutionState(str, Enum):
    """Lifecycle of the safety-gated executor."""

    IDLE = "IDLE"
    COUNTED = "COUNTED"
    EXECUTING = "EXECUTING"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"
    FAILED = "FAILED"


class ReconciliationStatus(str, Enum):
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


class ReconciliationResult(BaseModel):
    """Outcome of a live (non dry-run) merge."""

    target: str
    status: ReconciliationStatus
    rows_changed: int = Field(..., ge=0)
    pre_count: int | None = Field(default=None, ge=0)
    threshold: float | None = None
    variance: float | None = Field(
        default=None,
        description="Changed rows as a percentage of pre_count, one decimal place.",
    )
    warnings: list[str] = Field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.status is ReconciliationStatus.COMMITTED


class DryRunResult(BaseModel):
    """What a dry run returns instead of executing."""

    model_config = ConfigDict(frozen=True)

    statement: str
    audit_table_script: str
    threshold: str | None = None
    target_row_count: int | None = None
