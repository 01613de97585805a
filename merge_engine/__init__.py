"""Set-reconciliation engine: synthesize and run one MERGE that makes a target match a source."""

from __future__ import annotations

from merge_engine.config import Settings, load_settings
from merge_engine.engine import simple_merge
from merge_engine.errors import (
    ExecutionError,
    IntrospectionUnavailableError,
    MergeEngineError,
    MetadataRecordingFailure,
    SchemaError,
    SynthesisHazard,
    TableNotFoundError,
    ValidationError,
    VarianceExceeded,
)
from merge_engine.models import (
    DryRunResult,
    NotMatchedBySourcePolicy,
    ReconciliationRequest,
    ReconciliationResult,
    ReconciliationStatus,
)

__version__ = "0.1.0"

__all__ = [
    "DryRunResult",
    "ExecutionError",
    "IntrospectionUnavailableError",
    "MergeEngineError",
    "MetadataRecordingFailure",
    "NotMatchedBySourcePolicy",
    "ReconciliationRequest",
    "ReconciliationResult",
    "ReconciliationStatus",
    "SchemaError",
    "Settings",
    "SynthesisHazard",
    "TableNotFoundError",
    "ValidationError",
    "VarianceExceeded",
    "load_settings",
    "simple_merge",
]
