"""Reconciliation request models.

A :class:`ReconciliationRequest` is the complete, immutable configuration
of one merge invocation.  Structural checks that need no I/O (identifier
qualification, threshold syntax, key-list cap) live in
:mod:`merge_engine.parser.request_validator`, so that they raise the
engine's own :class:`~merge_engine.errors.ValidationError`.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NotMatchedAction(str, Enum):
    """What happens to target rows whose key is absent from the source."""

    DELETE = "DELETE"
    UPDATE = "UPDATE"
    IGNORE = "IGNORE"


class NotMatchedBySourcePolicy(BaseModel):
    """Not-matched-by-source policy.

    ``UPDATE`` carries the assignment list applied verbatim, e.g.
    ``"isDeleted = 1"``.
    """

    model_config = ConfigDict(frozen=True)

    action: NotMatchedAction = NotMatchedAction.DELETE
    update_expression: str | None = Field(
        default=None,
        description="Assignment list for UPDATE SET; required when action is UPDATE.",
    )

    @model_validator(mode="after")
    def validate_expression(self) -> NotMatchedBySourcePolicy:
        """Require an expression for UPDATE and forbid one otherwise."""
        if self.action is NotMatchedAction.UPDATE:
            if not (self.update_expression or "").strip():
                raise ValueError("UPDATE policy requires a non-empty update_expression.")
        elif self.update_expression is not None:
            raise ValueError(f"{self.action.value} policy does not take an update_expression.")
        return self

    @classmethod
    def delete(cls) -> NotMatchedBySourcePolicy:
        return cls(action=NotMatchedAction.DELETE)

    @classmethod
    def update(cls, expression: str) -> NotMatchedBySourcePolicy:
        return cls(action=NotMatchedAction.UPDATE, update_expression=expression)

    @classmethod
    def ignore(cls) -> NotMatchedBySourcePolicy:
        return cls(action=NotMatchedAction.IGNORE)

    @classmethod
    def from_option(cls, option: str | None) -> NotMatchedBySourcePolicy:
        """Parse the classic option string.

        * ``"YES"`` (any case) -- delete;
        * ``"set <assignments>"`` -- update with ``<assignments>``;
        * anything else, including ``None`` -- ignore.
        """
        text = (option or "").strip()
        if text.upper() == "YES":
            return cls.delete()
        if text[:4].lower() == "set " and text[4:].strip():
            return cls.update(text[4:].strip())
        return cls.ignore()


class ReconciliationRequest(BaseModel):
    """Caller-supplied configuration for a single merge invocation.

    Identifiers must be three-part (``database.schema.table``) unless they
    name a session-scoped ``#temp`` table.  ``key_columns`` accepts either a
    comma-separated string (``"Employee, [Date]"``) or a list of names.
    """

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., min_length=1, description="Table whose contents are replaced.")
    source: str = Field(..., min_length=1, description="Table supplying the desired end state.")
    key_columns: str | list[str] = Field(..., description="Columns identifying a logical row.")
    when_not_matched_by_source: NotMatchedBySourcePolicy = Field(
        default_factory=NotMatchedBySourcePolicy.delete,
        description="Action for target rows absent from the source.",
    )
    target_filter: str | None = Field(
        default=None,
        description="WHERE-clause predicate restricting which target rows the merge sees.",
    )
    duplicate_tolerant: bool = Field(
        default=False,
        description="Pair rows sharing a key by a per-key row number.",
    )
    audit_table: str | None = Field(
        default=None,
        description="Destination for the OUTPUT audit projection; None suppresses it.",
    )
    threshold: str | None = Field(
        default=None,
        description="Maximum percentage of target rows the merge may change, e.g. '15%'.",
    )
    dry_run: bool = Field(
        default=False,
        description="Return the statement and audit-table script instead of executing.",
    )
