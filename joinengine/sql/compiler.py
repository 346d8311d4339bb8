"""
SQL Compiler

Renders a validated QueryModel into parameterized PostgreSQL.

- Identifiers are always double-quoted; every table instance gets an AS alias
- Filter and HAVING values become named bind parameters (:p0, :p1, ...)
  usable with sqlalchemy.text()
- Output is deterministic: the same model always compiles to the same text
- Join conditions come only from the model; nothing is inferred here
- Raw expressions (aggregate expressions, calculated columns) are re-parsed
  and refused when they leave the expression allow-list
- Column transforms render from fixed templates; GROUP BY keeps raw columns
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from joinengine.config.constants import UNBOUNDED
from joinengine.models.query_model import (
    ColumnOrder,
    ColumnRef,
    ComparisonFilter,
    JoinClause,
    MembershipFilter,
    NullCheckFilter,
    QueryModel,
)
from joinengine.sql.analysis.ast_utils import (
    ExpressionParseError,
    disallowed_constructs,
    parse_expression,
    render_expression,
)
from joinengine.utils.errors import CompilationError


@dataclass(frozen=True)
class CompiledQuery:
    sql: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"sql": self.sql, "params": dict(self.params)}


def quote(identifier: str) -> str:
    """Double-quote a PostgreSQL identifier"""
    return '"' + identifier.replace('"', '""') + '"'


def column_sql(ref: ColumnRef) -> str:
    return f"{quote(ref.instance)}.{quote(ref.column)}"


def table_sql(schema: str, table: str, instance: str) -> str:
    return f"{quote(schema)}.{quote(table)} AS {quote(instance)}"


_TRANSFORMS: Dict[str, str] = {
    "DATE": "CAST({} AS DATE)",
    "YEAR": "EXTRACT(YEAR FROM {})",
    "MONTH": "EXTRACT(MONTH FROM {})",
    "DAY": "EXTRACT(DAY FROM {})",
    "UPPER": "UPPER({})",
    "LOWER": "LOWER({})",
    "TRIM": "TRIM({})",
    "ROUND": "ROUND({})",
}


def render_raw(expression: str, model: QueryModel) -> str:
    """Parse, check against the allow-list and render a free-form expression"""
    ast = parse_expression(expression)
    blocked = disallowed_constructs(ast)
    if blocked:
        raise CompilationError(f"Expression uses disallowed constructs {blocked}: {expression}")
    return render_expression(ast, model.resolve_instance)


class _Params:
    """Sequential named bind parameters"""

    def __init__(self):
        self.values: Dict[str, Any] = {}

    def add(self, value: Any) -> str:
        name = f"p{len(self.values)}"
        self.values[name] = value
        return f":{name}"


class SQLCompiler:
    """
    Usage:
        compiled = SQLCompiler().compile(model)
        conn.execute(text(compiled.sql), compiled.params)
    """

    def compile(self, model: QueryModel) -> CompiledQuery:
        """
        Raises:
            CompilationError: the model cannot be rendered (internal error; the
                validator should have rejected it)
        """
        try:
            return self._compile(model)
        except CompilationError:
            raise
        except (ExpressionParseError, KeyError, ValueError) as e:
            logger.error(f"Query model compilation failed: {e}")
            raise CompilationError(f"Could not compile query model: {e}") from e

    def _compile(self, model: QueryModel) -> CompiledQuery:
        params = _Params()
        aggregates = self._aggregate_sql(model)

        lines = [self._select(model, aggregates)]
        lines.extend(self._from_and_joins(model))

        where = self._where(model, params)
        if where:
            lines.append(f"WHERE {where}")

        if model.group_by is not None and model.group_by.group_by_columns:
            lines.append("GROUP BY " + ", ".join(column_sql(ref) for ref in model.group_by.group_by_columns))

        having = self._having(model, aggregates, params)
        if having:
            lines.append(f"HAVING {having}")

        if model.order_by:
            parts = []
            for order in model.order_by:
                target = column_sql(order.column) if isinstance(order, ColumnOrder) else quote(order.alias)
                parts.append(f"{target} {order.direction}")
            lines.append("ORDER BY " + ", ".join(parts))

        if model.limit != UNBOUNDED:
            lines.append(f"LIMIT {int(model.limit)}")
        if model.offset != UNBOUNDED:
            lines.append(f"OFFSET {int(model.offset)}")

        sql = "\n".join(lines)
        logger.debug(f"Compiled query model:\n{sql}")
        return CompiledQuery(sql=sql, params=params.values)

    # ------------------------------------------------------------------
    # SELECT
    # ------------------------------------------------------------------

    def _aggregate_sql(self, model: QueryModel) -> List[Tuple[str, str]]:
        """(output alias, rendered aggregate) in model order"""
        rendered: List[Tuple[str, str]] = []
        if model.group_by is None:
            return rendered

        for agg in model.group_by.aggregate_functions:
            distinct = "DISTINCT " if agg.distinct else ""
            rendered.append((agg.output_alias, f"{agg.function}({distinct}{column_sql(agg.column)})"))

        for agg in model.group_by.aggregate_expressions:
            rendered.append((agg.output_alias, render_raw(agg.expression, model)))

        return rendered

    def _select(self, model: QueryModel, aggregates: List[Tuple[str, str]]) -> str:
        items = []
        # Aggregate-only columns feed aggregates and are not projected
        for col in model.plain_selected_columns:
            item = column_sql(col)
            if col.transform:
                item = _TRANSFORMS[col.transform].format(item) + f" AS {quote(col.output_name)}"
            elif col.alias:
                item += f" AS {quote(col.alias)}"
            items.append(item)
        for alias, sql in aggregates:
            items.append(f"{sql} AS {quote(alias)}")
        for calc in model.calculated_columns:
            items.append(f"{render_raw(calc.expression, model)} AS {quote(calc.alias)}")

        if not items:
            raise CompilationError("Query model has nothing to select")
        return "SELECT " + ", ".join(items)

    # ------------------------------------------------------------------
    # FROM / JOIN
    # ------------------------------------------------------------------

    def _from_and_joins(self, model: QueryModel) -> List[str]:
        instances = model.table_instances()

        if not model.joins:
            selected = model.selected_instances() or list(instances)
            if not selected:
                raise CompilationError("Query model has no tables")
            schema, table = instances[selected[0]]
            return [f"FROM {table_sql(schema, table, selected[0])}"]

        first = model.joins[0]
        lines = [f"FROM {table_sql(first.left_schema, first.left_table, first.left_instance)}"]
        introduced = {first.left_instance}

        for i, join in enumerate(model.joins):
            lines.append(self._join(join, introduced, i))

        return lines

    def _join(self, join: JoinClause, introduced: set, index: int) -> str:
        if join.left_instance not in introduced and join.right_instance not in introduced:
            raise CompilationError(f"Join #{index} is not connected to previous tables: {join.describe()}")
        if join.right_instance not in introduced:
            schema, table, instance = join.right_schema, join.right_table, join.right_instance
        elif join.left_instance not in introduced:
            schema, table, instance = join.left_schema, join.left_table, join.left_instance
        else:
            raise CompilationError(f"Join #{index} introduces no new table: {join.describe()}")

        introduced.add(instance)

        condition = f"{column_sql(join.left_ref)} = {column_sql(join.right_ref)}"
        for pred in join.extra_predicates:
            condition += f" {pred.logic} {column_sql(pred.left_column)} {pred.operator} {column_sql(pred.right_column)}"

        return f"{join.join_kind} JOIN {table_sql(schema, table, instance)} ON {condition}"

    # ------------------------------------------------------------------
    # WHERE / HAVING
    # ------------------------------------------------------------------

    @staticmethod
    def _filter_sql(flt, params: _Params) -> str:
        col = column_sql(flt.column)
        if isinstance(flt, ComparisonFilter):
            return f"{col} {flt.operator} {params.add(flt.value)}"
        if isinstance(flt, MembershipFilter):
            placeholders = ", ".join(params.add(v) for v in flt.values)
            keyword = "NOT IN" if flt.negate else "IN"
            return f"{col} {keyword} ({placeholders})"
        if isinstance(flt, NullCheckFilter):
            return f"{col} IS NULL" if flt.is_null else f"{col} IS NOT NULL"
        raise CompilationError(f"Unsupported filter kind: {type(flt).__name__}")

    def _where(self, model: QueryModel, params: _Params) -> Optional[str]:
        if not model.filters:
            return None
        parts = []
        for i, flt in enumerate(model.filters):
            sql = self._filter_sql(flt, params)
            parts.append(sql if i == 0 else f"{flt.logic} {sql}")
        return " ".join(parts)

    @staticmethod
    def _having(model: QueryModel, aggregates: List[Tuple[str, str]], params: _Params) -> Optional[str]:
        if model.group_by is None or not model.group_by.having_conditions:
            return None
        by_alias = dict(aggregates)
        parts = []
        for i, having in enumerate(model.group_by.having_conditions):
            if having.target not in by_alias:
                raise CompilationError(f"HAVING target '{having.target}' is not an aggregate")
            # HAVING repeats the aggregate; output aliases are not visible there
            sql = f"{by_alias[having.target]} {having.operator} {params.add(having.value)}"
            parts.append(sql if i == 0 else f"{having.logic} {sql}")
        return " ".join(parts)
