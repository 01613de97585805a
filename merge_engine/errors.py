"""Exception taxonomy for the merge engine.

Every fatal error aborts the whole invocation.  Nothing here is retried
automatically; callers decide whether a second attempt makes sense.

``MetadataRecordingFailure`` is the only non-fatal member: the safety gate
catches it after a commit and reports it as a warning on the result.
"""

from __future__ import annotations


class MergeEngineError(Exception):
    """Base class for all merge engine errors."""


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


class ValidationError(MergeEngineError):
    """Raised for malformed requests before any schema resolution or execution."""


class TableNotFoundError(ValidationError):
    """Raised when a table identifier does not resolve to an object."""

    def __init__(self, role: str, table: str) -> None:
        self.role = role
        self.table = table
        super().__init__(f"{role}: {table} not found.")


# ---------------------------------------------------------------------------
# Schema alignment
# ---------------------------------------------------------------------------


class SchemaError(MergeEngineError):
    """Raised when the source/target/key column invariants do not hold.

    Parameters
    ----------
    message:
        Human-readable description.
    column:
        The offending column name, when one is known.
    side:
        ``"source"`` or ``"target"`` -- the side the column is missing from.
    """

    def __init__(self, message: str, *, column: str | None = None, side: str | None = None) -> None:
        self.column = column
        self.side = side
        super().__init__(message)


class IntrospectionUnavailableError(SchemaError):
    """Raised when the catalog could not describe a table that does exist.

    This is distinct from :class:`TableNotFoundError`: the table resolves,
    but the introspection mechanism itself failed in the current session
    (for example when ``SET STATISTICS XML`` or ``SHOWPLAN`` is active).
    """


# ---------------------------------------------------------------------------
# Synthesis / execution
# ---------------------------------------------------------------------------


class SynthesisHazard(MergeEngineError):
    """Raised when an assembled statement would be read as a bind variable."""

    def __init__(self, token: str, statement: str) -> None:
        self.token = token
        self.statement = statement
        super().__init__(
            f"Assembled statement begins with bind-variable marker {token!r}; "
            "refusing to execute it as statement text."
        )


class VarianceExceeded(MergeEngineError):
    """Raised after a rollback when the changed-row percentage is above the threshold."""

    def __init__(
        self,
        threshold: float,
        variance: float,
        *,
        changed_rows: int,
        pre_count: int,
        result: object | None = None,
    ) -> None:
        self.threshold = threshold
        self.variance = variance
        self.changed_rows = changed_rows
        self.pre_count = pre_count
        # The ROLLED_BACK ReconciliationResult, when raised by the safety gate.
        self.result = result
        super().__init__(f"Merge aborted: variance exceeded {threshold:g}% ({variance:.1f}%).")


class ExecutionError(MergeEngineError):
    """Raised when the backend fails while running the merge statement."""


class MetadataRecordingFailure(MergeEngineError):
    """Raised by metadata recorders; downgraded to a warning after a commit."""
