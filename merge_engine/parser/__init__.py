"""Request parsing, validation and statement guarding."""

from merge_engine.parser.identifiers import (
    parse_key_columns,
    parse_table_identifier,
    split_identifier,
    strip_identifier,
)
from merge_engine.parser.request_validator import (
    ValidatedRequest,
    check_caller_assignments,
    check_caller_expression,
    parse_threshold,
    validate_request,
)
from merge_engine.parser.statement_guard import assert_no_bind_marker_leakage, find_leading_bind_marker

__all__ = [
    "ValidatedRequest",
    "assert_no_bind_marker_leakage",
    "check_caller_assignments",
    "check_caller_expression",
    "find_leading_bind_marker",
    "parse_key_columns",
    "parse_table_identifier",
    "parse_threshold",
    "split_identifier",
    "strip_identifier",
    "validate_request",
]
