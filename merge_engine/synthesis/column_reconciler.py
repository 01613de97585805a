"""Three-way alignment of source columns, target columns and key names.

This is a pure function over already-materialised inputs: it needs no
database access, so every invariant can be exercised with synthetic
schemas.  Names are matched exactly (case-sensitive).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from merge_engine.errors import IntrospectionUnavailableError, SchemaError
from merge_engine.models.columns import ColumnDescriptor, ColumnInfo, ReconciledColumns

logger = logging.getLogger(__name__)


def reconcile(
    source_columns: Sequence[ColumnInfo],
    target_columns: Sequence[ColumnInfo],
    key_column_names: Sequence[str],
) -> ReconciledColumns:
    """Full outer alignment by name of source, target and key list.

    Parameters
    ----------
    source_columns:
        Ordered source result shape.
    target_columns:
        Ordered target result shape.
    key_column_names:
        Bare key names in caller order (see
        :func:`merge_engine.parser.parse_key_columns`).

    Returns
    -------
    ReconciledColumns
        One descriptor per distinct name.

    Raises
    ------
    IntrospectionUnavailableError
        If the target result shape is empty.
    SchemaError
        If a key column is missing from the source or the target, or a
        source column is missing from the target.  The error names the
        column and the side it is missing from.
    """
    if not target_columns:
        raise IntrospectionUnavailableError(
            "Target schema introspection returned no usable result shape.",
            side="target",
        )

    source_by_name: dict[str, tuple[int, ColumnInfo]] = {}
    for ordinal, column in enumerate(source_columns, start=1):
        source_by_name.setdefault(column.name, (ordinal, column))

    target_by_name: dict[str, tuple[int, ColumnInfo]] = {}
    for ordinal, column in enumerate(target_columns, start=1):
        target_by_name.setdefault(column.name, (ordinal, column))

    key_by_name = {name: position for position, name in enumerate(key_column_names, start=1)}

    # Validation order: keys against source, keys against target, then the
    # source-subset-of-target rule.
    for name in key_column_names:
        if name not in source_by_name:
            raise SchemaError(f"Specified join column {name!r} missing from source.", column=name, side="source")
    for name in key_column_names:
        if name not in target_by_name:
            raise SchemaError(f"Specified join column {name!r} missing from target.", column=name, side="target")
    for name in source_by_name:
        if name not in target_by_name:
            raise SchemaError(f"Source column {name!r} missing from target.", column=name, side="target")

    descriptors: list[ColumnDescriptor] = []
    for name, (target_ordinal, target_column) in target_by_name.items():
        source_entry = source_by_name.get(name)
        source_ordinal = source_entry[0] if source_entry else None
        source_nullable = source_entry[1].nullable if source_entry else False
        descriptors.append(
            ColumnDescriptor(
                name=name,
                source_ordinal=source_ordinal,
                target_ordinal=target_ordinal,
                key_position=key_by_name.get(name),
                type_name=target_column.data_type or (source_entry[1].data_type if source_entry else ""),
                nullable=target_column.nullable or source_nullable,
            )
        )

    result = ReconciledColumns(descriptors=tuple(descriptors))
    logger.debug(
        "Reconciled %d column(s): %d key, %d shared, %d target-only",
        len(descriptors),
        len(result.key_columns),
        len(result.shared_columns),
        len(result.target_only_columns),
    )
    return result
