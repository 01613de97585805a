"""SQLGlot-backed T-SQL implementation of the SQL toolkit protocols.

This is the ONLY file in the codebase that knows T-SQL spelling.  Every
identifier, table reference, predicate, function call, window and
INTERSECT subquery is built as a ``sqlglot.exp`` tree and generated with
the ``tsql`` dialect.  Two things are composed here rather than by the
generator:

* Clause layout of MERGE / SELECT / CREATE TABLE (one clause per line).
  SQLGlot cannot emit ``OUTPUT ... INTO`` a three-part table name.
* ``$action`` and ``%%physloc%%`` enter the tree as opaque ``exp.Var``
  leaves; the tsql parser does not read ``%%physloc%%``.

Caller-supplied fragments (:class:`RawExpression`) are also ``exp.Var``
leaves: they have already been parsed by the request validator and are
emitted exactly as the caller wrote them.

Rendering is a pure function of the fragment tree: identical trees always
produce identical text.
"""

from __future__ import annotations

import logging
from functools import reduce

from sqlglot import exp

from .._types import (
    Alias,
    And,
    ColumnRef,
    CreateTable,
    Dialect,
    Equals,
    Expression,
    FunctionCall,
    IsNull,
    MergeStatement,
    NotExistsIntersect,
    Or,
    Pseudo,
    PseudoColumn,
    RawExpression,
    RowNumber,
    Select,
    SqlRenderError,
    Star,
    Statement,
    TableRef,
    WhenNotMatchedBySourceDelete,
    WhenNotMatchedBySourceUpdate,
)

logger = logging.getLogger(__name__)

_DIALECT = Dialect.TSQL.value
_INDENT = "    "

_PSEUDO_SQL: dict[PseudoColumn, str] = {
    PseudoColumn.MERGE_ACTION: "$action",
    PseudoColumn.PHYSICAL_LOCATOR: "%%physloc%%",
}


def _quoted(name: str) -> exp.Identifier:
    return exp.to_identifier(name, quoted=True)


# ---------------------------------------------------------------------------
# TSqlRenderer
# ---------------------------------------------------------------------------


class TSqlRenderer:
    """T-SQL :class:`SqlRenderer` implementation."""

    @property
    def dialect(self) -> Dialect:
        return Dialect.TSQL

    # -- Identifiers ---------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        """Bracket-quote *name*; SQLGlot doubles any closing bracket inside it."""
        return _quoted(name).sql(dialect=_DIALECT)

    def render_table(self, table: TableRef) -> str:
        if table.catalog is not None and table.schema is None:
            # ``db..name`` keeps the database's default schema.
            return f"{self.quote_identifier(table.catalog)}..{self.quote_identifier(table.name)}"
        node = exp.table_(table.name, db=table.schema, catalog=table.catalog, quoted=True)
        return node.sql(dialect=_DIALECT)

    def _render_relation(self, relation: TableRef | str) -> str:
        if isinstance(relation, TableRef):
            return self.render_table(relation)
        return self.quote_identifier(relation)

    # -- Expressions ---------------------------------------------------------

    def render_expression(self, expression: Expression) -> str:
        if isinstance(expression, RawExpression):
            return expression.sql.strip()
        return self._node(expression).sql(dialect=_DIALECT)

    def _node(self, expression: Expression) -> exp.Expression:
        """Translate a typed fragment into a SQLGlot expression tree."""
        if isinstance(expression, ColumnRef):
            return exp.column(_quoted(expression.name), table=expression.table)

        if isinstance(expression, Star):
            return exp.Star()

        if isinstance(expression, Pseudo):
            return exp.var(_PSEUDO_SQL[expression.kind])

        if isinstance(expression, RawExpression):
            return exp.var(expression.sql.strip())

        if isinstance(expression, FunctionCall):
            return exp.Anonymous(this=expression.name, expressions=[self._node(a) for a in expression.args])

        if isinstance(expression, Equals):
            return exp.EQ(this=self._operand(expression.left), expression=self._operand(expression.right))

        if isinstance(expression, IsNull):
            return exp.Is(this=self._operand(expression.operand), expression=exp.Null())

        if isinstance(expression, And):
            return reduce(
                lambda left, right: exp.And(this=left, expression=right),
                [self._operand(o) for o in expression.operands],
            )

        if isinstance(expression, Or):
            return reduce(
                lambda left, right: exp.Or(this=left, expression=right),
                [self._operand(o) for o in expression.operands],
            )

        if isinstance(expression, RowNumber):
            # nulls_first matches the tsql default, so no NULL-ordering emulation is added
            order = exp.Order(expressions=[exp.Ordered(this=self._node(expression.order_by), nulls_first=True)])
            return exp.Window(
                this=exp.Anonymous(this="ROW_NUMBER", expressions=[]),
                partition_by=[self._node(p) for p in expression.partition_by],
                order=order,
            )

        if isinstance(expression, Alias):
            return exp.Alias(this=self._node(expression.expression), alias=_quoted(expression.alias))

        if isinstance(expression, NotExistsIntersect):
            intersect = exp.Intersect(
                this=exp.Select(expressions=[self._node(e) for e in expression.left]),
                expression=exp.Select(expressions=[self._node(e) for e in expression.right]),
                distinct=True,
            )
            return exp.Not(this=exp.Exists(this=intersect))

        raise SqlRenderError(f"Cannot render expression of type {type(expression).__name__}")

    def _operand(self, expression: Expression) -> exp.Expression:
        """Translate *expression* as an operand, parenthesising compound predicates."""
        node = self._node(expression)
        if isinstance(expression, (And, Or, RawExpression)):
            return exp.Paren(this=node)
        return node

    def _operand_sql(self, expression: Expression) -> str:
        return self._operand(expression).sql(dialect=_DIALECT)

    # -- Statements ----------------------------------------------------------

    def render(self, statement: Statement, *, pretty: bool = True) -> str:
        if isinstance(statement, MergeStatement):
            lines = self._merge_lines(statement)
        elif isinstance(statement, Select):
            lines = self._select_lines(statement)
        elif isinstance(statement, CreateTable):
            lines = self._create_table_lines(statement)
        else:
            raise SqlRenderError(f"Cannot render statement of type {type(statement).__name__}")

        if not pretty:
            return " ".join(line.strip() for line in lines) + ";"
        return "\n".join(lines) + ";"

    def _select_lines(self, select: Select) -> list[str]:
        projections = ", ".join(self.render_expression(p) for p in select.projections)
        lines = [f"SELECT {projections}"]
        if select.source is not None:
            lines.append(f"FROM {self.render_table(select.source)}")
        if select.where is not None:
            lines.append(f"WHERE {self.render_expression(select.where)}")
        return lines

    def _merge_lines(self, merge: MergeStatement) -> list[str]:
        lines: list[str] = []

        for index, cte in enumerate(merge.ctes):
            opener = "WITH" if index == 0 else ","
            lines.append(f"{opener} {self.quote_identifier(cte.name)} AS (")
            lines.extend(_INDENT + line for line in self._select_lines(cte.query))
            lines.append(")")

        # Header
        target_alias = exp.to_identifier(merge.target_alias).sql(dialect=_DIALECT)
        source_alias = exp.to_identifier(merge.source_alias).sql(dialect=_DIALECT)
        lines.append(f"MERGE INTO {self._render_relation(merge.target)} AS {target_alias}")
        lines.append(f"USING {self._render_relation(merge.source)} AS {source_alias}")
        conjuncts = merge.on.operands if isinstance(merge.on, And) else (merge.on,)
        for index, conjunct in enumerate(conjuncts):
            prefix = "ON " if index == 0 else "AND "
            lines.append(_INDENT + prefix + self._operand_sql(conjunct))

        # WHEN MATCHED
        if merge.when_matched is not None:
            matched = merge.when_matched
            condition = ""
            if matched.condition is not None:
                condition = f" AND {self.render_expression(matched.condition)}"
            lines.append(f"WHEN MATCHED{condition}")
            assignments = ", ".join(
                exp.EQ(this=self._node(a.column), expression=self._operand(a.value)).sql(dialect=_DIALECT)
                for a in matched.assignments
            )
            lines.append(f"{_INDENT}THEN UPDATE SET {assignments}")

        # WHEN NOT MATCHED BY TARGET
        if merge.when_not_matched is not None:
            insert = merge.when_not_matched
            columns = ", ".join(self.quote_identifier(c) for c in insert.columns)
            values = ", ".join(self.render_expression(v) for v in insert.values)
            lines.append("WHEN NOT MATCHED BY TARGET")
            lines.append(f"{_INDENT}THEN INSERT ({columns})")
            lines.append(f"{_INDENT}VALUES ({values})")

        # WHEN NOT MATCHED BY SOURCE
        by_source = merge.when_not_matched_by_source
        if isinstance(by_source, WhenNotMatchedBySourceDelete):
            lines.append("WHEN NOT MATCHED BY SOURCE")
            lines.append(f"{_INDENT}THEN DELETE")
        elif isinstance(by_source, WhenNotMatchedBySourceUpdate):
            lines.append("WHEN NOT MATCHED BY SOURCE")
            lines.append(f"{_INDENT}THEN UPDATE SET {self.render_expression(by_source.assignments)}")

        # OUTPUT ... INTO
        if merge.output is not None:
            output = merge.output
            projections = ", ".join(self.render_expression(p) for p in output.projections)
            columns = ", ".join(self.quote_identifier(c) for c in output.columns)
            lines.append(f"OUTPUT {projections}")
            lines.append(f"{_INDENT}INTO {self.render_table(output.into)} ({columns})")

        return lines

    def _create_table_lines(self, create: CreateTable) -> list[str]:
        # Column types are catalog text and are emitted as reported.
        lines = [f"CREATE TABLE {self.render_table(create.table)} ("]
        for index, column in enumerate(create.columns):
            separator = "," if index < len(create.columns) - 1 else ""
            nullability = "NULL" if column.nullable else "NOT NULL"
            lines.append(f"{_INDENT}{self.quote_identifier(column.name)} {column.type_name} {nullability}{separator}")
        lines.append(")")
        return lines
