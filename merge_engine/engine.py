"""One-call entry point: validate, resolve, reconcile, assemble, execute.

Pipeline::

    validate_request -> existence checks -> resolve both sides -> reconcile
      -> assemble -> [pre-count] -> dry run ? DryRunResult : safety gate

Everything before the safety gate is read-only, so a validation, schema
or synthesis error never leaves a transaction open.
"""

from __future__ import annotations

import logging

from merge_engine.config import Settings
from merge_engine.errors import TableNotFoundError
from merge_engine.executor.base import ExecutionBackend, MetadataRecorder, SchemaResolver
from merge_engine.executor.safety_gate import SafetyGatedExecutor
from merge_engine.models.plan import DryRunResult, ReconciliationResult
from merge_engine.models.request import ReconciliationRequest
from merge_engine.parser.request_validator import validate_request
from merge_engine.synthesis.column_reconciler import reconcile
from merge_engine.synthesis.statement_assembler import assemble

logger = logging.getLogger(__name__)


def format_threshold(threshold: float | None) -> str | None:
    """``15.0`` -> ``"15%"``; ``None`` stays ``None``."""
    if threshold is None:
        return None
    return f"{threshold:g}%"


def simple_merge(
    request: ReconciliationRequest,
    *,
    resolver: SchemaResolver,
    backend: ExecutionBackend,
    recorder: MetadataRecorder | None = None,
    settings: Settings | None = None,
) -> ReconciliationResult | DryRunResult:
    """Reconcile ``request.target`` to ``request.source`` in one MERGE.

    Parameters
    ----------
    request:
        The merge configuration.
    resolver:
        Catalog access used for existence checks and column resolution.
    backend:
        Statement execution and transaction control.
    recorder:
        Optional metadata recorder stamped after a successful commit.
    settings:
        Engine settings; defaults are loaded from the environment.

    Returns
    -------
    ReconciliationResult | DryRunResult
        The committed result, or the rendered statements for a dry run.

    Raises
    ------
    ValidationError
        Malformed request or a table that does not exist.
    SchemaError
        Source, target and key columns do not align.
    SynthesisHazard
        The assembled statement would be read as a bind variable.
    VarianceExceeded
        The merge changed more rows than the threshold allows; rolled back.
    ExecutionError
        The backend failed while running the merge; rolled back.
    """
    settings = settings or Settings()

    validated = validate_request(request, settings)

    for role, table in (("Target", request.target), ("Source", request.source), ("Output", request.audit_table)):
        if table is not None and not resolver.exists(table):
            raise TableNotFoundError(role, table)

    columns = reconcile(
        resolver.resolve(request.source),
        resolver.resolve(request.target),
        list(validated.key_columns),
    )
    plan = assemble(request, validated, columns, settings)

    executor = SafetyGatedExecutor(backend, recorder, settings)
    if validated.threshold is not None or request.dry_run:
        plan = executor.count(plan)

    if request.dry_run:
        logger.info("Dry run for %s: statement rendered, nothing executed", request.target)
        assert plan.audit_table_script is not None
        return DryRunResult(
            statement=plan.statement,
            audit_table_script=plan.audit_table_script,
            threshold=format_threshold(validated.threshold),
            target_row_count=plan.pre_count,
        )

    return executor.execute(plan, validated.threshold)
