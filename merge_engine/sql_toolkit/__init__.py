"""SQL Toolkit: typed SQL fragments and the T-SQL renderer.

Usage::

    from merge_engine.sql_toolkit import ColumnRef, Equals, TSqlRenderer

    predicate = Equals(ColumnRef("id", "t"), ColumnRef("id", "s"))
    text = TSqlRenderer().render_expression(predicate)

Fragments are plain frozen values; only the renderer produces text.
"""

from ._protocols import SqlRenderer
from ._types import (
    Alias,
    And,
    Assignment,
    ColumnDefinition,
    ColumnRef,
    CommonTableExpression,
    CreateTable,
    Dialect,
    Equals,
    Expression,
    FunctionCall,
    IsNull,
    MergeStatement,
    NotExistsIntersect,
    NotMatchedBySourceClause,
    Or,
    OutputClause,
    Pseudo,
    PseudoColumn,
    RawExpression,
    RowNumber,
    Select,
    SqlRenderError,
    SqlToolkitError,
    Star,
    Statement,
    TableRef,
    WhenMatchedUpdate,
    WhenNotMatchedBySourceDelete,
    WhenNotMatchedBySourceUpdate,
    WhenNotMatchedInsert,
)
from .impl.tsql_impl import TSqlRenderer

__all__ = [
    # Renderer
    "TSqlRenderer",
    "SqlRenderer",
    # Types
    "Dialect",
    "TableRef",
    "PseudoColumn",
    "Expression",
    "Statement",
    "ColumnRef",
    "Star",
    "Pseudo",
    "RawExpression",
    "FunctionCall",
    "Equals",
    "IsNull",
    "And",
    "Or",
    "RowNumber",
    "Alias",
    "Select",
    "NotExistsIntersect",
    "CommonTableExpression",
    "Assignment",
    "WhenMatchedUpdate",
    "WhenNotMatchedInsert",
    "WhenNotMatchedBySourceDelete",
    "WhenNotMatchedBySourceUpdate",
    "NotMatchedBySourceClause",
    "OutputClause",
    "MergeStatement",
    "ColumnDefinition",
    "CreateTable",
    # Exceptions
    "SqlToolkitError",
    "SqlRenderError",
]
