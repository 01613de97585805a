"""Column models: introspected columns and the reconciled column set.

``ColumnInfo`` is what a :class:`SchemaResolver` returns for one side.
``ColumnDescriptor`` is the aligned view produced by the column reconciler:
one descriptor per distinct column name seen in the source, the target, or
the caller's key list.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ColumnInfo(BaseModel):
    """Description of a single column within a table schema."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Column name.")
    data_type: str = Field(..., description="Declared type as reported by the catalog.")
    nullable: bool = Field(default=True, description="Whether the column allows NULLs.")


class ColumnDescriptor(BaseModel):
    """One aligned column across source, target and key list.

    ``source_ordinal`` / ``target_ordinal`` are 1-based positions in the
    respective result shapes; ``key_position`` is the 1-based position in the
    caller's key list.  Each is ``None`` when the column is absent there.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    source_ordinal: int | None = Field(default=None, ge=1)
    target_ordinal: int | None = Field(default=None, ge=1)
    key_position: int | None = Field(default=None, ge=1)
    type_name: str = Field(default="", description="Declared type, used for audit-table generation only.")
    nullable: bool = True

    @property
    def is_key(self) -> bool:
        return self.key_position is not None

    @property
    def in_source(self) -> bool:
        return self.source_ordinal is not None

    @property
    def in_target(self) -> bool:
        return self.target_ordinal is not None


class ReconciledColumns(BaseModel):
    """The validated, aligned column model consumed by the synthesis stages.

    Exposes the three partitions in the order every downstream fragment
    uses them:

    * ``key_columns`` -- by ``key_position``;
    * ``shared_columns`` -- non-key columns present on both sides, by
      ``source_ordinal``;
    * ``audit_columns`` -- every non-key target column (shared or
      target-only), by ``target_ordinal``.
    """

    model_config = ConfigDict(frozen=True)

    descriptors: tuple[ColumnDescriptor, ...] = Field(default_factory=tuple)

    @property
    def key_columns(self) -> list[ColumnDescriptor]:
        keys = [d for d in self.descriptors if d.key_position is not None]
        return sorted(keys, key=lambda d: d.key_position or 0)

    @property
    def shared_columns(self) -> list[ColumnDescriptor]:
        shared = [d for d in self.descriptors if not d.is_key and d.in_source and d.in_target]
        return sorted(shared, key=lambda d: d.source_ordinal or 0)

    @property
    def target_only_columns(self) -> list[ColumnDescriptor]:
        only = [d for d in self.descriptors if d.in_target and not d.in_source]
        return sorted(only, key=lambda d: d.target_ordinal or 0)

    @property
    def audit_columns(self) -> list[ColumnDescriptor]:
        non_key = [d for d in self.descriptors if not d.is_key and d.in_target]
        return sorted(non_key, key=lambda d: d.target_ordinal or 0)

    @property
    def source_columns(self) -> list[ColumnDescriptor]:
        """Every source column (keys included), by ``source_ordinal``."""
        source = [d for d in self.descriptors if d.in_source]
        return sorted(source, key=lambda d: d.source_ordinal or 0)

    @property
    def has_updatable_columns(self) -> bool:
        """False for all-key tables, which get no matched-update clause."""
        return bool(self.shared_columns)

    def get(self, name: str) -> ColumnDescriptor | None:
        for descriptor in self.descriptors:
            if descriptor.name == name:
                return descriptor
        return None
