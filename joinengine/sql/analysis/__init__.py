"""
SQL analysis utilities using sqlglot AST
"""

from joinengine.sql.analysis.ast_utils import (
    ExpressionParseError,
    parse_expression,
    extract_column_refs,
    contains_aggregate,
    disallowed_constructs,
    render_expression,
)

__all__ = [
    "ExpressionParseError",
    "parse_expression",
    "extract_column_refs",
    "contains_aggregate",
    "disallowed_constructs",
    "render_expression",
]
