"""Domain models for the merge engine."""

from merge_engine.models.columns import ColumnDescriptor, ColumnInfo, ReconciledColumns
from merge_engine.models.plan import (
    DryRunResult,
    ExecutionState,
    ReconciliationPlan,
    ReconciliationResult,
    ReconciliationStatus,
)
from merge_engine.models.request import (
    NotMatchedAction,
    NotMatchedBySourcePolicy,
    ReconciliationRequest,
)

__all__ = [
    "ColumnDescriptor",
    "ColumnInfo",
    "DryRunResult",
    "ExecutionState",
    "NotMatchedAction",
    "NotMatchedBySourcePolicy",
    "ReconciledColumns",
    "ReconciliationPlan",
    "ReconciliationRequest",
    "ReconciliationResult",
    "ReconciliationStatus",
]
