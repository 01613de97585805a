"""Unit tests for merge_engine.parser.request_validator and the request models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from merge_engine.config import Settings
from merge_engine.errors import ValidationError
from merge_engine.models.request import NotMatchedAction, NotMatchedBySourcePolicy, ReconciliationRequest
from merge_engine.parser.request_validator import (
    check_caller_assignments,
    check_caller_expression,
    parse_threshold,
    validate_request,
)
from merge_engine.sql_toolkit import TableRef


def _request(**overrides) -> ReconciliationRequest:
    fields = {
        "target": "db.dbo.Employee",
        "source": "db.dbo.EmployeeStage",
        "key_columns": "Id",
    }
    fields.update(overrides)
    return ReconciliationRequest(**fields)


# ---------------------------------------------------------------------------
# Threshold
# ---------------------------------------------------------------------------


class TestParseThreshold:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("15%", 15.0), ("15", 15.0), ("12.5 %", 12.5), (" 0% ", 0.0), ("100%", 100.0)],
    )
    def test_valid(self, raw, expected):
        assert parse_threshold(raw) == expected

    def test_none_means_no_threshold(self):
        assert parse_threshold(None) is None

    @pytest.mark.parametrize("raw", ["abc", "", "%", "-1%", "NaN", "Infinity"])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError, match="Threshold: .* is invalid"):
            parse_threshold(raw)


# ---------------------------------------------------------------------------
# Caller expressions
# ---------------------------------------------------------------------------


class TestCheckCallerExpression:
    def test_plain_predicate(self):
        assert check_caller_expression(" IsActive = 1 ", "Target filter") == "IsActive = 1"

    def test_terminator_inside_literal_allowed(self):
        assert check_caller_expression("Name = 'a;b--c'", "Target filter") == "Name = 'a;b--c'"

    def test_escaped_quote_allowed(self):
        assert check_caller_expression("Name = 'it''s'", "Target filter") == "Name = 'it''s'"

    @pytest.mark.parametrize("expression", ["[a--b] = 1", '"x;y" = 1', "[note/*] IS NULL"])
    def test_delimited_identifiers_allowed(self, expression):
        assert check_caller_expression(expression, "Target filter") == expression

    @pytest.mark.parametrize("expression", ["Id = 1; DROP TABLE x", "Id = 1;"])
    def test_statement_separator_rejected(self, expression):
        with pytest.raises(ValidationError, match="must not end or add statements"):
            check_caller_expression(expression, "Target filter")

    @pytest.mark.parametrize("expression", ["Id = 1 -- trailing", "Id = 1 /* hidden */", "Id = 1 /* open"])
    def test_comments_rejected(self, expression):
        with pytest.raises(ValidationError, match="must not contain comments"):
            check_caller_expression(expression, "Target filter")

    def test_trailing_clause_rejected(self):
        with pytest.raises(ValidationError, match="must be a single predicate"):
            check_caller_expression("Id = 1 ORDER BY Name", "Target filter")

    def test_unterminated_literal_rejected(self):
        with pytest.raises(ValidationError, match="is not valid T-SQL"):
            check_caller_expression("Name = 'abc", "Target filter")

    def test_blank_rejected(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            check_caller_expression("   ", "Target filter")


class TestCheckCallerAssignments:
    def test_assignment_list(self):
        text = "isDeleted = 1, [del;on] = SYSDATETIME()"
        assert check_caller_assignments(f" {text} ", "Update") == text

    def test_statement_separator_rejected(self):
        with pytest.raises(ValidationError, match="must not end or add statements"):
            check_caller_assignments("isDeleted = 1; DELETE FROM x", "Update")

    def test_from_clause_rejected(self):
        with pytest.raises(ValidationError, match="must be a list of column assignments"):
            check_caller_assignments("isDeleted = 1 FROM x", "Update")

    def test_comment_rejected(self):
        with pytest.raises(ValidationError, match="must not contain comments"):
            check_caller_assignments("isDeleted = 1 -- oops", "Update")

    def test_predicate_without_assignment_rejected(self):
        with pytest.raises(ValidationError, match="Update"):
            check_caller_assignments("isDeleted", "Update")


# ---------------------------------------------------------------------------
# Not-matched-by-source policy
# ---------------------------------------------------------------------------


class TestNotMatchedBySourcePolicy:
    def test_default_is_delete(self):
        assert _request().when_not_matched_by_source.action is NotMatchedAction.DELETE

    def test_update_requires_expression(self):
        with pytest.raises(PydanticValidationError):
            NotMatchedBySourcePolicy(action=NotMatchedAction.UPDATE)

    def test_delete_takes_no_expression(self):
        with pytest.raises(PydanticValidationError):
            NotMatchedBySourcePolicy(action=NotMatchedAction.DELETE, update_expression="x = 1")

    @pytest.mark.parametrize(
        ("option", "action", "expression"),
        [
            ("YES", NotMatchedAction.DELETE, None),
            ("yes", NotMatchedAction.DELETE, None),
            ("set isDeleted = 1", NotMatchedAction.UPDATE, "isDeleted = 1"),
            ("SET  isDeleted = 1, deletedOn = SYSDATETIME()", NotMatchedAction.UPDATE, "isDeleted = 1, deletedOn = SYSDATETIME()"),
            ("NO", NotMatchedAction.IGNORE, None),
            (None, NotMatchedAction.IGNORE, None),
            ("set ", NotMatchedAction.IGNORE, None),
        ],
    )
    def test_from_option(self, option, action, expression):
        policy = NotMatchedBySourcePolicy.from_option(option)
        assert policy.action is action
        assert policy.update_expression == expression


# ---------------------------------------------------------------------------
# validate_request
# ---------------------------------------------------------------------------


class TestValidateRequest:
    def test_happy_path(self):
        validated = validate_request(
            _request(audit_table="db.audit.EmployeeLog", key_columns="Id, [Region]", threshold="15%")
        )
        assert validated.target == TableRef("db", "dbo", "Employee")
        assert validated.source == TableRef("db", "dbo", "EmployeeStage")
        assert validated.audit_table == TableRef("db", "audit", "EmployeeLog")
        assert validated.key_columns == ("Id", "Region")
        assert validated.threshold == 15.0

    def test_no_audit_table(self):
        assert validate_request(_request()).audit_table is None

    def test_temp_source_allowed(self):
        assert validate_request(_request(source="#stage")).source.is_temporary

    def test_unqualified_target(self):
        with pytest.raises(ValidationError, match="Target: dbo.Employee is invalid"):
            validate_request(_request(target="dbo.Employee"))

    def test_unqualified_audit_table(self):
        with pytest.raises(ValidationError, match="Output: EmployeeLog is invalid"):
            validate_request(_request(audit_table="EmployeeLog"))

    def test_bad_threshold(self):
        with pytest.raises(ValidationError, match="Threshold: lots is invalid"):
            validate_request(_request(threshold="lots"))

    def test_key_cap_from_settings(self):
        with pytest.raises(ValidationError, match="the limit is 1"):
            validate_request(_request(key_columns="Id, Region"), Settings(_env_file=None, max_key_columns=1))

    def test_delimited_identifier_in_filter_accepted(self):
        validated = validate_request(_request(target_filter="[a--b] = 1"))
        assert validated.target == TableRef("db", "dbo", "Employee")

    def test_target_filter_checked(self):
        with pytest.raises(ValidationError, match="Target filter"):
            validate_request(_request(target_filter="1 = 1; DELETE FROM x"))

    def test_update_expression_checked(self):
        policy = NotMatchedBySourcePolicy.update("isDeleted = 1 -- oops")
        with pytest.raises(ValidationError, match="Not-matched-by-source update"):
            validate_request(_request(when_not_matched_by_source=policy))
