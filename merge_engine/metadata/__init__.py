"""Per-table metadata recording."""

from __future__ import annotations

from merge_engine.metadata.recorder import (
    ExtendedPropertyRecorder,
    render_ensure_property,
    render_set_property,
)

__all__ = [
    "ExtendedPropertyRecorder",
    "render_ensure_property",
    "render_set_property",
]
