"""SQL toolkit protocol definitions.

:class:`SqlRenderer` is the contract a renderer satisfies.  Code that
accepts a renderer (the statement assembler) is typed against it, so a
different renderer can be passed without touching the synthesis package.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ._types import Dialect, Expression, Statement, TableRef


@runtime_checkable
class SqlRenderer(Protocol):
    """Render typed SQL fragments to statement text."""

    @property
    def dialect(self) -> Dialect:
        """The dialect this renderer emits."""
        ...

    def render(self, statement: Statement, *, pretty: bool = True) -> str:
        """Render a complete statement.

        Args:
            statement: A :class:`MergeStatement`, :class:`Select` or
                :class:`CreateTable`.
            pretty: If ``True``, emit one clause per line with indentation.

        Returns:
            The rendered SQL text, terminated with ``;`` for DML/DDL.

        Raises:
            SqlRenderError: If the fragment type is not supported.
        """
        ...

    def render_expression(self, expression: Expression) -> str:
        """Render a single expression fragment (predicate, projection, ...)."""
        ...

    def quote_identifier(self, name: str) -> str:
        """Safely quote an identifier for the renderer's dialect."""
        ...

    def render_table(self, table: TableRef) -> str:
        """Render a (possibly multi-part) table reference."""
        ...
