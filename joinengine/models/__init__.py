"""
Query model - declarative multi-table query value
"""

from joinengine.models.query_model import (
    AggregateExpression,
    AggregateFunction,
    AliasOrder,
    CalculatedColumn,
    ColumnOrder,
    ColumnRef,
    ComparisonFilter,
    GroupByClause,
    HavingCondition,
    JoinClause,
    JoinPredicate,
    MembershipFilter,
    NullCheckFilter,
    QueryModel,
    SelectedColumn,
    attach_suggested_joins,
)

__all__ = [
    "AggregateExpression",
    "AggregateFunction",
    "AliasOrder",
    "CalculatedColumn",
    "ColumnOrder",
    "ColumnRef",
    "ComparisonFilter",
    "GroupByClause",
    "HavingCondition",
    "JoinClause",
    "JoinPredicate",
    "MembershipFilter",
    "NullCheckFilter",
    "QueryModel",
    "SelectedColumn",
    "attach_suggested_joins",
]
