"""Execution layer: backend protocols, adapters and the safety gate."""

from __future__ import annotations

from merge_engine.executor.base import ExecutionBackend, MetadataRecorder, SchemaResolver
from merge_engine.executor.safety_gate import (
    SafetyGatedExecutor,
    VarianceDecision,
    compute_variance,
    evaluate_variance,
    metadata_timestamp,
)
from merge_engine.executor.schema_introspector import (
    DescribeFirstResultSetResolver,
    SqlAlchemySchemaResolver,
    parse_describe_first_result_set,
)
from merge_engine.executor.sqlalchemy_backend import SqlAlchemyBackend, connect_backend, get_engine

__all__ = [
    "DescribeFirstResultSetResolver",
    "ExecutionBackend",
    "MetadataRecorder",
    "SafetyGatedExecutor",
    "SchemaResolver",
    "SqlAlchemyBackend",
    "SqlAlchemySchemaResolver",
    "VarianceDecision",
    "compute_variance",
    "connect_backend",
    "evaluate_variance",
    "get_engine",
    "metadata_timestamp",
    "parse_describe_first_result_set",
]
