"""Identifier parsing for table names and key-column lists.

Splitting honours bracket (``[a.b]``), double-quote and backtick
delimiters, so dots and commas inside a delimited name are preserved.
Parsing is purely syntactic: nothing here touches the catalog.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from merge_engine.errors import ValidationError
from merge_engine.sql_toolkit import TableRef

logger = logging.getLogger(__name__)

_CLOSERS: dict[str, str] = {"[": "]", '"': '"', "`": "`", "'": "'"}

# Up to four parts are accepted (server.database.schema.object); only the
# trailing three are kept.
_MAX_NAME_PARTS = 4


def _split_outside_delimiters(text: str, separator: str) -> list[str]:
    """Split *text* on *separator* wherever it is not inside a delimited name."""
    parts: list[str] = []
    current: list[str] = []
    closer: str | None = None
    i = 0
    while i < len(text):
        ch = text[i]
        if closer is not None:
            current.append(ch)
            if ch == closer:
                # A doubled closer is an escaped literal closer.
                if i + 1 < len(text) and text[i + 1] == closer:
                    current.append(text[i + 1])
                    i += 1
                else:
                    closer = None
        elif ch in _CLOSERS:
            closer = _CLOSERS[ch]
            current.append(ch)
        elif ch == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    if closer is not None:
        raise ValidationError(f"Unterminated delimited identifier in {text!r}.")
    parts.append("".join(current))
    return parts


def strip_identifier(part: str) -> str:
    """Remove surrounding whitespace and bracket/quote decoration from one name part."""
    text = part.strip()
    if len(text) >= 2 and text[0] in _CLOSERS and text[-1] == _CLOSERS[text[0]]:
        closer = _CLOSERS[text[0]]
        return text[1:-1].replace(closer * 2, closer)
    return text


def split_identifier(text: str) -> list[str]:
    """Split a dotted name into bare parts: ``"[db].dbo.[t]"`` -> ``["db", "dbo", "t"]``."""
    return [strip_identifier(p) for p in _split_outside_delimiters(text, ".")]


def parse_table_identifier(text: str, role: str = "Table", *, require_database: bool = True) -> TableRef:
    """Parse a table identifier into a :class:`TableRef`.

    Parameters
    ----------
    text:
        The identifier as supplied by the caller.
    role:
        ``"Target"``, ``"Source"`` or ``"Output"`` -- used in error messages.
    require_database:
        When True (the default), non-temporary tables must name their
        database: ``database.schema.table`` or ``database..table``.

    Raises
    ------
    ValidationError
        If the identifier is empty, has too many parts, or lacks a database.
    """
    raw = (text or "").strip()
    if not raw:
        raise ValidationError(f"{role}: identifier is required.")

    parts = split_identifier(raw)
    if len(parts) > _MAX_NAME_PARTS or not parts[-1]:
        raise ValidationError(f"{role}: {raw} is invalid.")

    name = parts[-1]
    schema = parts[-2] if len(parts) >= 2 else None
    catalog = parts[-3] if len(parts) >= 3 else None

    if name.startswith("#"):
        # Session-scoped temp tables live in tempdb regardless of any prefix.
        return TableRef(name=name)

    if require_database and not catalog:
        raise ValidationError(f"{role}: {raw} is invalid. Database name is required.")

    return TableRef(catalog=catalog or None, schema=schema or None, name=name)


def parse_key_columns(key_list: str | Sequence[str], max_columns: int = 100) -> list[str]:
    """Parse the caller's key-column list into bare column names.

    Accepts either a comma-separated string or a sequence of names.  Each
    entry is stripped of whitespace and decoration, and only its last dotted
    part is kept (``"t.[Employee]"`` -> ``"Employee"``).

    Raises
    ------
    ValidationError
        If the list is empty, contains an empty entry or a duplicate, or has
        more than *max_columns* entries.
    """
    if isinstance(key_list, str):
        items = _split_outside_delimiters(key_list, ",")
    else:
        items = list(key_list)

    names: list[str] = []
    for item in items:
        name = split_identifier(item)[-1] if item.strip() else ""
        if not name:
            raise ValidationError(f"Key column list contains an empty entry: {key_list!r}.")
        if name in names:
            raise ValidationError(f"Key column {name!r} is listed more than once.")
        names.append(name)

    if not names:
        raise ValidationError("At least one key column is required.")
    if len(names) > max_columns:
        raise ValidationError(f"Key column list has {len(names)} entries; the limit is {max_columns}.")

    logger.debug("Parsed %d key column(s): %s", len(names), ", ".join(names))
    return names
