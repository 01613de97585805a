"""Structural validation of a :class:`ReconciliationRequest`.

Runs before any catalog lookup or statement execution, so a malformed
request never leaves partial work behind.  All failures raise
:class:`~merge_engine.errors.ValidationError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError
from sqlglot.tokens import TokenType

from merge_engine.config import Settings
from merge_engine.errors import ValidationError
from merge_engine.models.request import NotMatchedAction, ReconciliationRequest
from merge_engine.parser.identifiers import parse_key_columns, parse_table_identifier
from merge_engine.sql_toolkit import TableRef

logger = logging.getLogger(__name__)

_DIALECT = "tsql"


@dataclass(frozen=True, slots=True)
class ValidatedRequest:
    """Parsed identifiers and options derived from a request."""

    target: TableRef
    source: TableRef
    audit_table: TableRef | None
    key_columns: tuple[str, ...]
    threshold: float | None


def parse_threshold(threshold: str | None) -> float | None:
    """Parse ``"15%"`` / ``"15"`` / ``"12.5 %"`` into a percentage.

    Returns ``None`` when no threshold was requested.

    Raises
    ------
    ValidationError
        If the text is not a non-negative number once ``%`` is removed.
    """
    if threshold is None:
        return None
    text = threshold.replace("%", "").strip()
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise ValidationError(f"Threshold: {threshold} is invalid.") from exc
    if not value.is_finite() or value < 0:
        raise ValidationError(f"Threshold: {threshold} is invalid.")
    return float(value)


def _parse_caller_sql(wrapped: str, label: str, shown: str) -> exp.Expression:
    """Tokenize and parse *wrapped* as exactly one T-SQL statement."""
    try:
        tokens = sqlglot.tokenize(wrapped, read=_DIALECT)
        statements = [s for s in sqlglot.parse(wrapped, read=_DIALECT) if s is not None]
    except SqlglotError as exc:
        logger.warning("%s could not be parsed: %s", label, exc)
        raise ValidationError(f"{label} is not valid T-SQL: {shown!r}") from exc

    if len(statements) != 1 or any(token.token_type == TokenType.SEMICOLON for token in tokens):
        raise ValidationError(f"{label} must not end or add statements: {shown!r}")
    if any(token.comments for token in tokens):
        raise ValidationError(f"{label} must not contain comments: {shown!r}")
    return statements[0]


def _populated_args(node: exp.Expression) -> set[str]:
    return {key for key, value in node.args.items() if value}


def check_caller_expression(expression: str, label: str) -> str:
    """Check that *expression* is a single T-SQL search condition.

    The text is parsed as ``SELECT 1 WHERE <expression>``; anything beyond
    one WHERE predicate (a second statement, a ``;``, a comment, trailing
    clauses) is rejected.  Delimited identifiers and string literals may
    contain any character.  Returns the stripped expression.
    """
    stripped = expression.strip()
    if not stripped:
        raise ValidationError(f"{label} must not be empty.")
    shown = stripped[:80]
    statement = _parse_caller_sql(f"SELECT 1 WHERE {stripped}", label, shown)
    if not isinstance(statement, exp.Select) or _populated_args(statement) != {"expressions", "where"}:
        raise ValidationError(f"{label} must be a single predicate: {shown!r}")
    return stripped


def check_caller_assignments(expression: str, label: str) -> str:
    """Check that *expression* is a ``column = value[, ...]`` assignment list.

    The text is parsed as ``UPDATE [t] SET <expression>``; every item must
    assign to a column.  Returns the stripped expression.
    """
    stripped = expression.strip()
    if not stripped:
        raise ValidationError(f"{label} must not be empty.")
    shown = stripped[:80]
    statement = _parse_caller_sql(f"UPDATE [t] SET {stripped}", label, shown)
    if not isinstance(statement, exp.Update) or _populated_args(statement) != {"this", "expressions"}:
        raise ValidationError(f"{label} must be a list of column assignments: {shown!r}")
    for item in statement.expressions:
        if not (isinstance(item, exp.EQ) and isinstance(item.this, exp.Column)):
            raise ValidationError(f"{label} must be a list of column assignments: {shown!r}")
    return stripped


def validate_request(request: ReconciliationRequest, settings: Settings | None = None) -> ValidatedRequest:
    """Validate *request* and return its parsed form.

    Checks, in order: threshold syntax, target / source / audit identifiers
    (three-part unless ``#temp``), key-column list (decoration, duplicates,
    ``settings.max_key_columns`` cap), and caller-supplied expressions.
    """
    settings = settings or Settings()

    threshold = parse_threshold(request.threshold)
    target = parse_table_identifier(request.target, "Target")
    source = parse_table_identifier(request.source, "Source")
    audit_table = (
        parse_table_identifier(request.audit_table, "Output") if request.audit_table is not None else None
    )
    key_columns = parse_key_columns(request.key_columns, settings.max_key_columns)

    if request.target_filter is not None:
        check_caller_expression(request.target_filter, "Target filter")

    policy = request.when_not_matched_by_source
    if policy.action is NotMatchedAction.UPDATE and policy.update_expression is not None:
        check_caller_assignments(policy.update_expression, "Not-matched-by-source update")

    logger.debug(
        "Validated merge request %s <- %s (keys=%s, threshold=%s)",
        target.fully_qualified,
        source.fully_qualified,
        ",".join(key_columns),
        threshold,
    )

    return ValidatedRequest(
        target=target,
        source=source,
        audit_table=audit_table,
        key_columns=tuple(key_columns),
        threshold=threshold,
    )
