"""Safety-gated execution of a reconciliation plan.

State machine::

    IDLE -> COUNTED -> EXECUTING -> COMMITTED
                                 -> ROLLED_BACK   (variance above threshold)
                                 -> FAILED        (statement or commit error, cancellation)

The target pre-count runs outside the merge transaction.  A writer that
changes the target between the count and the merge skews the variance
denominator; callers needing a hard guarantee must serialise writers or
raise the isolation level themselves.

The commit decision is :func:`evaluate_variance`, a pure function of the
pre-count, the changed-row count and the threshold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from merge_engine.config import Settings
from merge_engine.errors import ExecutionError, VarianceExceeded
from merge_engine.executor.base import ExecutionBackend, MetadataRecorder
from merge_engine.models.plan import (
    ExecutionState,
    ReconciliationPlan,
    ReconciliationResult,
    ReconciliationStatus,
)

logger = logging.getLogger(__name__)

_ONE_DECIMAL = Decimal("0.1")


# ---------------------------------------------------------------------------
# Variance decision
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VarianceDecision:
    """Whether to commit, and the variance the decision was based on."""

    commit: bool
    variance: float | None
    bypassed: bool


def compute_variance(changed_rows: int, pre_count: int | None) -> float | None:
    """Changed rows as a percentage of *pre_count*, rounded half-up to one decimal.

    Returns ``None`` when the pre-count is unknown or zero.
    """
    if not pre_count:
        return None
    value = Decimal(changed_rows) * 100 / Decimal(pre_count)
    return float(value.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def evaluate_variance(pre_count: int | None, changed_rows: int, threshold: float | None) -> VarianceDecision:
    """Decide whether a merge that changed *changed_rows* rows may commit.

    * no threshold -- always commit;
    * empty target (``pre_count == 0``) -- always commit, the check is bypassed;
    * otherwise commit iff ``variance <= threshold``.

    Raises
    ------
    ValueError
        If a threshold is given without a pre-count.
    """
    variance = compute_variance(changed_rows, pre_count)
    if threshold is None:
        return VarianceDecision(commit=True, variance=variance, bypassed=True)
    if pre_count is None:
        raise ValueError("A variance threshold requires a target pre-count.")
    if pre_count == 0:
        return VarianceDecision(commit=True, variance=None, bypassed=True)
    assert variance is not None
    return VarianceDecision(commit=variance <= threshold, variance=variance, bypassed=False)


def metadata_timestamp(now: datetime | None = None) -> str:
    """``YYYY-MM-DD HH:MM:SS.mmm`` in UTC."""
    moment = now or datetime.now(UTC)
    return moment.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class SafetyGatedExecutor:
    """Run a :class:`ReconciliationPlan` inside one transaction, gated on variance.

    An executor instance drives a single plan; create a new one per
    invocation.

    Parameters
    ----------
    backend:
        Statement execution and transaction control.
    recorder:
        Optional metadata recorder stamped after a successful commit.
    settings:
        Engine settings (metadata property name).
    """

    def __init__(
        self,
        backend: ExecutionBackend,
        recorder: MetadataRecorder | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._backend = backend
        self._recorder = recorder
        self._settings = settings or Settings()
        self._state = ExecutionState.IDLE

    @property
    def state(self) -> ExecutionState:
        return self._state

    # -- IDLE -> COUNTED -----------------------------------------------------

    def count(self, plan: ReconciliationPlan) -> ReconciliationPlan:
        """Count target rows (after any filter) and return the plan carrying the count."""
        if self._state is not ExecutionState.IDLE:
            raise RuntimeError(f"Cannot count from state {self._state.value}")
        value = self._backend.scalar(plan.count_statement)
        if value is None:
            self._state = ExecutionState.FAILED
            raise ExecutionError(f"Row count of {plan.target} returned no value; nothing was merged.")
        pre_count = int(value)
        self._state = ExecutionState.COUNTED
        logger.info("Target %s has %d row(s) before merge", plan.target, pre_count)
        return plan.with_pre_count(pre_count)

    # -- COUNTED -> EXECUTING -> terminal --------------------------------------

    def execute(self, plan: ReconciliationPlan, threshold: float | None = None) -> ReconciliationResult:
        """Execute *plan* and commit or roll back.

        A threshold without a pre-count on the plan triggers the count first.

        Raises
        ------
        VarianceExceeded
            After rolling back, when the changed-row percentage is above
            *threshold*.  ``exc.result`` holds the ROLLED_BACK result.
        ExecutionError
            After rolling back, when the statement or the commit fails.
        """
        if self._state not in (ExecutionState.IDLE, ExecutionState.COUNTED):
            raise RuntimeError(f"Plan already consumed (state {self._state.value})")

        if threshold is not None and plan.pre_count is None:
            plan = self.count(plan)

        self._state = ExecutionState.EXECUTING
        self._backend.begin()
        try:
            changed_rows = int(self._backend.execute(plan.statement))
        except Exception as exc:
            self._fail()
            logger.error("Merge into %s failed: %s: %s", plan.target, type(exc).__name__, exc)
            raise ExecutionError(f"Merge into {plan.target} failed: {exc}") from exc
        except BaseException:
            # Cancellation mid-transaction must never leave a partial commit.
            self._fail()
            raise

        if changed_rows < 0:
            self._fail()
            raise ExecutionError(f"Merge into {plan.target} did not report a changed-row count; rolled back.")

        decision = evaluate_variance(plan.pre_count, changed_rows, threshold)

        if not decision.commit:
            self._rollback_quietly()
            self._state = ExecutionState.ROLLED_BACK
            assert threshold is not None and decision.variance is not None and plan.pre_count is not None
            result = ReconciliationResult(
                target=plan.target,
                status=ReconciliationStatus.ROLLED_BACK,
                rows_changed=changed_rows,
                pre_count=plan.pre_count,
                threshold=threshold,
                variance=decision.variance,
            )
            logger.warning(
                "Merge into %s rolled back: variance %.1f%% exceeds threshold %g%%",
                plan.target,
                decision.variance,
                threshold,
            )
            raise VarianceExceeded(
                threshold,
                decision.variance,
                changed_rows=changed_rows,
                pre_count=plan.pre_count,
                result=result,
            )

        try:
            self._backend.commit()
        except Exception as exc:
            self._fail()
            raise ExecutionError(f"Commit of merge into {plan.target} failed: {exc}") from exc

        self._state = ExecutionState.COMMITTED
        logger.info(
            "Merge into %s committed: %d row(s) changed (variance=%s)",
            plan.target,
            changed_rows,
            "n/a" if decision.variance is None else f"{decision.variance:.1f}%",
            extra={"merge": {"target": plan.target, "rows_changed": changed_rows, "variance": decision.variance}},
        )

        return ReconciliationResult(
            target=plan.target,
            status=ReconciliationStatus.COMMITTED,
            rows_changed=changed_rows,
            pre_count=plan.pre_count,
            threshold=threshold,
            variance=decision.variance,
            warnings=self._record_metadata(plan.target),
        )

    # -- Helpers -------------------------------------------------------------

    def _fail(self) -> None:
        self._rollback_quietly()
        self._state = ExecutionState.FAILED

    def _rollback_quietly(self) -> None:
        try:
            self._backend.rollback()
        except Exception:
            logger.exception("Rollback failed; the backend must discard the open transaction")

    def _record_metadata(self, target: str) -> list[str]:
        """Stamp the last-merge timestamp.  Failures become warnings, never errors."""
        if self._recorder is None:
            return []
        key = self._settings.metadata_property
        try:
            self._recorder.ensure_property_exists(target, key)
            self._recorder.set_property(target, key, metadata_timestamp())
        except Exception as exc:
            logger.warning("Could not record %s on %s: %s", key, target, exc)
            return [f"Metadata recording failed for {target}: {exc}"]
        return []
