"""Bind-variable leakage guard for assembled statements.

A statement whose first token is a bind-variable marker (``@name``,
``:name``, ``?``, ``$1``, ``%s``, ``%(name)s``) would be interpreted by the
driver or the server as a parameter reference rather than as statement
text.  Such text must never reach execution; the guard runs on the final
rendered statement, immediately before it is placed in a plan.
"""

from __future__ import annotations

import logging
import re

from merge_engine.errors import SynthesisHazard

logger = logging.getLogger(__name__)

# Leading whitespace and comments, consumed repeatedly before the first token.
_LEADING_TRIVIA = re.compile(r"\A(?:\s+|--[^\n]*(?:\n|\Z)|/\*.*?\*/)", re.DOTALL)

_BIND_MARKER = re.compile(
    r"""\A(
        @@?\w*            # T-SQL variable or system function
      | :\w+              # named (colon) parameter
      | \?                # qmark parameter
      | \$\d+             # numeric (dollar) parameter
      | %\(\w+\)s         # pyformat parameter
      | %s                # format parameter
    )""",
    re.VERBOSE,
)


def _strip_leading_trivia(sql: str) -> str:
    text = sql
    while True:
        match = _LEADING_TRIVIA.match(text)
        if match is None or match.end() == 0:
            return text
        text = text[match.end():]


def find_leading_bind_marker(sql: str) -> str | None:
    """Return the bind-variable marker *sql* starts with, or ``None``."""
    match = _BIND_MARKER.match(_strip_leading_trivia(sql))
    return match.group(1) if match else None


def assert_no_bind_marker_leakage(sql: str) -> None:
    """Raise :class:`SynthesisHazard` if *sql* begins with a bind-variable marker.

    Raises
    ------
    SynthesisHazard
        Carrying the offending token and the full statement text.
    """
    token = find_leading_bind_marker(sql)
    if token is None:
        return
    logger.error("Assembled statement begins with bind-variable marker %r; blocking execution", token)
    raise SynthesisHazard(token, sql)
