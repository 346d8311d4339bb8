"""
SQL AST utilities using sqlglot for aggregate expression analysis.

Raw aggregate expressions (e.g. "SUM(order_items.quantity * products.price)")
and calculated columns are the only free-form SQL a query model carries.
This module:
- Parses them into an AST (rejecting anything that is not a plain expression)
- Reports constructs outside the expression allow-list, such as server
  functions
- Extracts the column references they consume
- Re-renders them deterministically with resolved, quoted qualifiers
"""

from typing import Callable, List, Optional, Tuple

import sqlglot
from loguru import logger
from sqlglot import exp
from sqlglot.errors import SqlglotError

from joinengine.config.constants import SQL_DIALECT

# Statement nodes never allowed inside an aggregate expression
_STATEMENT_TYPES = (
    exp.Query,
    exp.Command,
    exp.Create,
    exp.Drop,
    exp.Insert,
    exp.Update,
    exp.Delete,
)


# Structural nodes an expression may contain
_ALLOWED_NODES = (
    exp.Column,
    exp.Identifier,
    exp.Star,
    exp.Literal,
    exp.Null,
    exp.Boolean,
    exp.Paren,
    exp.Neg,
    exp.Add,
    exp.Sub,
    exp.Mul,
    exp.Div,
    exp.Mod,
    exp.DPipe,
    exp.Case,
    exp.If,
    exp.EQ,
    exp.NEQ,
    exp.GT,
    exp.GTE,
    exp.LT,
    exp.LTE,
    exp.And,
    exp.Or,
    exp.Not,
    exp.Is,
    exp.In,
    exp.Between,
    exp.Like,
    exp.ILike,
    exp.Distinct,
    exp.Cast,
    exp.DataType,
    exp.DataTypeParam,
    exp.Var,
)

# Scalar functions allowed next to aggregates (every exp.AggFunc is allowed)
_ALLOWED_FUNCTIONS = (
    exp.Abs,
    exp.Round,
    exp.Floor,
    exp.Ceil,
    exp.Coalesce,
    exp.Nullif,
    exp.Greatest,
    exp.Least,
    exp.Lower,
    exp.Upper,
    exp.Trim,
    exp.Length,
    exp.Extract,
)


class ExpressionParseError(ValueError):
    """Raised when a raw expression cannot be parsed into a single SQL expression"""
    pass


def parse_expression(expression: str, dialect: str = SQL_DIALECT) -> exp.Expression:
    """
    Parse a raw SQL expression into a sqlglot AST.

    Raises:
        ExpressionParseError: If the text is not a single valid expression

    Example:
        >>> ast = parse_expression("SUM(orders.total)")
        >>> type(ast).__name__
        'Sum'
    """
    if not expression or not expression.strip():
        raise ExpressionParseError("Empty expression")

    try:
        statements = [s for s in sqlglot.parse(expression, read=dialect) if s is not None]
    except SqlglotError as e:
        raise ExpressionParseError(f"Could not parse expression '{expression}': {e}") from e

    if len(statements) != 1:
        raise ExpressionParseError(f"Expected exactly one expression in '{expression}', got {len(statements)}")
    parsed = statements[0]
    if isinstance(parsed, _STATEMENT_TYPES) or parsed.find(*_STATEMENT_TYPES) is not None:
        raise ExpressionParseError(f"Statements are not allowed in expressions: '{expression}'")

    logger.debug(f"Parsed expression into AST: {type(parsed).__name__}")
    return parsed


def extract_column_refs(ast: exp.Expression) -> List[Tuple[Optional[str], str]]:
    """
    Extract (qualifier, column) pairs for every column the expression reads.

    The qualifier is the table/alias prefix, or None when unqualified.

    Example:
        >>> extract_column_refs(parse_expression("SUM(oi.quantity * p.price)"))
        [('oi', 'quantity'), ('p', 'price')]
    """
    refs: List[Tuple[Optional[str], str]] = []
    for column in ast.find_all(exp.Column):
        if isinstance(column.this, exp.Star):
            continue
        ref = (column.table or None, column.name)
        if ref not in refs:
            refs.append(ref)
    return refs


def contains_aggregate(ast: exp.Expression) -> bool:
    """True when the expression contains at least one aggregate function"""
    return isinstance(ast, exp.AggFunc) or ast.find(exp.AggFunc) is not None


def render_expression(
    ast: exp.Expression,
    resolve: Callable[[Optional[str], str], Optional[str]],
    dialect: str = SQL_DIALECT,
) -> str:
    """
    Render an expression with every column re-qualified and quoted.

    Args:
        ast: Parsed expression (not modified)
        resolve: (qualifier, column) -> table instance name, or None when the
            column cannot be resolved
        dialect: Output dialect

    Raises:
        ExpressionParseError: A column reference cannot be resolved
    """
    def _requalify(node: exp.Expression) -> exp.Expression:
        if isinstance(node, exp.Column) and not isinstance(node.this, exp.Star):
            instance = resolve(node.table or None, node.name)
            if instance is None:
                raise ExpressionParseError(f"Unresolved column reference '{node.sql()}'")
            return exp.column(node.name, table=instance, quoted=True)
        return node

    rendered = ast.copy().transform(_requalify)
    return rendered.sql(dialect=dialect)


def disallowed_constructs(ast: exp.Expression) -> List[str]:
    """
    Names of every construct outside the expression allow-list, in discovery order.

    Aggregates, arithmetic, literals, columns, CASE, CAST and a short list of
    scalar functions are allowed; anything else (e.g. a server function such
    as pg_read_file, a window clause or an alias) is reported.

    Example:
        >>> disallowed_constructs(parse_expression("MAX(pg_read_file('x')) + COUNT(o.id)"))
        ['PG_READ_FILE']
    """
    allowed = (exp.AggFunc,) + _ALLOWED_FUNCTIONS + _ALLOWED_NODES
    found: List[str] = []
    for node in ast.find_all(exp.Expression):
        if isinstance(node, allowed):
            continue
        name = node.name if isinstance(node, exp.Anonymous) else node.key
        name = name.upper()
        if name not in found:
            found.append(name)
    return found
