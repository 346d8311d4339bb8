"""
Tests for the query model validator.
"""

import pytest

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
    QueryModel,
    SelectedColumn,
)
from joinengine.validation.errors import (
    AliasConflict,
    BrokenJoinChain,
    EmptySelection,
    ExpressionReason,
    GroupByReason,
    InvalidExpression,
    InvalidGroupBy,
    OrphanedTables,
    UnknownColumn,
    UnknownColumnReason,
    UnrecognizedJoin,
    ValidationErrorType,
)
from joinengine.validation.validator import ModelValidator


def col(table, column, alias=None, table_alias=None, **kwargs):
    return SelectedColumn(
        schema_name="public",
        table=table,
        table_alias=table_alias,
        column=column,
        alias=alias,
        **kwargs,
    )


def ref(table, column, table_alias=None):
    return ColumnRef(schema_name="public", table=table, table_alias=table_alias, column=column)


def join(left, right, left_alias=None, right_alias=None, **kwargs):
    lt, lc = left.split(".")
    rt, rc = right.split(".")
    return JoinClause(
        left_schema="public",
        left_table=lt,
        left_alias=left_alias,
        left_column=lc,
        right_schema="public",
        right_table=rt,
        right_alias=right_alias,
        right_column=rc,
        **kwargs,
    )


@pytest.fixture
def validator(commerce_snapshot, commerce_suggestions):
    return ModelValidator(commerce_snapshot, commerce_suggestions, allow_user_authored_joins=True)


def types_of(issues):
    return [type(issue) for issue in issues]


class TestValidModels:
    def test_single_table(self, validator):
        model = QueryModel(columns=[col("orders", "status"), col("orders", "created_at")])
        assert validator.validate(model) == []

    def test_reverse_orientation_is_accepted(self, validator):
        # Suggestion is order_items.product_id -> products.id
        model = QueryModel(
            columns=[col("products", "name"), col("order_items", "quantity")],
            joins=[join("products.id", "order_items.product_id")],
        )
        assert validator.validate(model) == []

    def test_junction_chain(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "status"),
                col("order_items", "id", is_selected=False),
                col("products", "name"),
            ],
            joins=[
                join("orders.id", "order_items.order_id", join_kind="LEFT"),
                join("order_items.product_id", "products.id", join_kind="LEFT"),
            ],
        )
        assert validator.validate(model) == []

    def test_self_join_with_alias(self, validator):
        model = QueryModel(
            columns=[
                col("users", "name"),
                col("users", "name", alias="manager_name", table_alias="manager"),
            ],
            joins=[join("users.manager_id", "users.id", right_alias="manager", user_authored=True)],
        )
        assert validator.validate(model) == []

    def test_aggregate_with_group_by(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "status"),
                col("order_items", "quantity", is_selected=False, is_aggregate_only=True),
            ],
            joins=[join("orders.id", "order_items.order_id")],
            group_by=GroupByClause(
                group_by_columns=[ref("orders", "status")],
                aggregate_functions=[
                    AggregateFunction(column=ref("order_items", "quantity"), function="sum", alias="total"),
                ],
                having_conditions=[HavingCondition(target="total", operator=">", value=10)],
            ),
            order_by=[AliasOrder(alias="total", direction="desc")],
        )
        assert validator.validate(model) == []

    def test_validation_does_not_mutate_input(self, validator):
        model = QueryModel(
            columns=[col("orders", "status"), col("customers", "name")],
            joins=[join("orders.customer_id", "customers.id")],
        )
        before = model.model_dump()
        validator.validate(model)
        assert model.model_dump() == before


class TestExistence:
    def test_empty_selection(self, validator):
        model = QueryModel(columns=[col("orders", "status", is_selected=False)])
        issues = validator.validate(model)
        assert types_of(issues) == [EmptySelection]

    def test_unknown_column_is_fail_fast(self, validator):
        model = QueryModel(
            columns=[col("orders", "missing"), col("customers", "name")],
            joins=[join("orders.status", "customers.name")],
        )
        issues = validator.validate(model)
        assert len(issues) == 1
        issue = issues[0]
        assert isinstance(issue, UnknownColumn)
        assert (issue.table, issue.column) == ("orders", "missing")
        assert issue.reason == UnknownColumnReason.NOT_IN_SCHEMA

    def test_unknown_table(self, validator):
        model = QueryModel(columns=[col("invoices", "id")])
        issues = validator.validate(model)
        assert types_of(issues) == [UnknownColumn]

    def test_reference_outside_column_set(self, validator):
        model = QueryModel(
            columns=[col("orders", "status")],
            filters=[ComparisonFilter(column=ref("customers", "name"), operator="=", value="Ada")],
        )
        issue = validator.validate(model)[0]
        assert isinstance(issue, UnknownColumn)
        assert issue.reason == UnknownColumnReason.TABLE_NOT_IN_COLUMNS
        assert issue.location == "filters[0]"

    def test_alias_bound_to_two_tables(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "status", table_alias="o"),
                col("customers", "name", table_alias="o"),
            ],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [AliasConflict]
        assert issues[0].alias == "o"

    def test_duplicate_output_alias(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "status", alias="label"),
                col("customers", "name", alias="label"),
            ],
            joins=[join("orders.customer_id", "customers.id")],
        )
        assert types_of(validator.validate(model)) == [AliasConflict]

    def test_unresolved_expression_column(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "status"),
                col("order_items", "quantity", is_selected=False, is_aggregate_only=True),
            ],
            joins=[join("orders.id", "order_items.order_id")],
            group_by=GroupByClause(
                group_by_columns=[ref("orders", "status")],
                aggregate_expressions=[AggregateExpression(raw_expression="SUM([[products.price]])")],
            ),
        )
        issue = validator.validate(model)[0]
        assert isinstance(issue, UnknownColumn)
        assert issue.reason == UnknownColumnReason.UNRESOLVED_REFERENCE

    def test_unknown_order_by_alias(self, validator):
        model = QueryModel(
            columns=[col("orders", "status")],
            order_by=[AliasOrder(alias="nope")],
        )
        issue = validator.validate(model)[0]
        assert isinstance(issue, UnknownColumn)
        assert issue.reason == UnknownColumnReason.UNKNOWN_ALIAS


class TestJoins:
    def test_unrecognized_join(self, validator):
        model = QueryModel(
            columns=[col("orders", "status"), col("customers", "name")],
            joins=[join("orders.status", "customers.name")],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [UnrecognizedJoin]
        assert issues[0].reason == "no_matching_suggestion"

    def test_user_authored_join_with_incompatible_types(self, validator):
        model = QueryModel(
            columns=[col("orders", "status"), col("customers", "name")],
            joins=[join("orders.status", "customers.id", user_authored=True)],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [UnrecognizedJoin]
        assert issues[0].reason == "incompatible_types"

    def test_user_authored_joins_disabled(self, commerce_snapshot, commerce_suggestions):
        validator = ModelValidator(commerce_snapshot, commerce_suggestions, allow_user_authored_joins=False)
        model = QueryModel(
            columns=[col("users", "name"), col("customers", "name")],
            joins=[join("users.id", "customers.id", user_authored=True)],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [UnrecognizedJoin]
        assert issues[0].reason == "user_authored_joins_disabled"


class TestConnectivity:
    def test_orphaned_table(self, validator):
        model = QueryModel(
            columns=[col("orders", "status"), col("customers", "name"), col("products", "name")],
            joins=[join("orders.customer_id", "customers.id")],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [OrphanedTables]
        assert issues[0].tables == ["products"]

    def test_filter_table_must_be_connected(self, validator):
        model = QueryModel(
            columns=[col("orders", "status"), col("products", "price", is_selected=False)],
            filters=[ComparisonFilter(column=ref("products", "price"), operator=">", value=5)],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [OrphanedTables]
        assert issues[0].tables == ["products"]

    def test_broken_chain(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "status"),
                col("customers", "name"),
                col("order_items", "quantity"),
                col("products", "name", alias="product"),
            ],
            joins=[
                join("orders.customer_id", "customers.id"),
                join("order_items.product_id", "products.id"),
            ],
        )
        issues = validator.validate(model)
        chain = [i for i in issues if isinstance(i, BrokenJoinChain)]
        assert len(chain) == 1
        assert chain[0].join_index == 1
        assert chain[0].reason == "neither_side_introduced"
        assert OrphanedTables in types_of(issues)

    def test_issues_accumulate(self, validator):
        model = QueryModel(
            columns=[col("orders", "status"), col("customers", "name"), col("products", "name", alias="p")],
            joins=[join("orders.status", "customers.name")],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [UnrecognizedJoin, OrphanedTables]


class TestAggregation:
    def _model(self, group_by_columns, **kwargs):
        return QueryModel(
            columns=[
                col("orders", "status"),
                col("order_items", "quantity", is_selected=False, is_aggregate_only=True),
            ],
            joins=[join("orders.id", "order_items.order_id")],
            group_by=GroupByClause(
                group_by_columns=group_by_columns,
                aggregate_functions=[AggregateFunction(column=ref("order_items", "quantity"), function="SUM")],
                **kwargs,
            ),
        )

    def test_missing_from_group_by(self, validator):
        issues = validator.validate(self._model([]))
        assert types_of(issues) == [InvalidGroupBy]
        assert issues[0].column == "orders.status"
        assert issues[0].reason == GroupByReason.MISSING_FROM_GROUP_BY

    def test_aggregate_input_wrongly_grouped(self, validator):
        issues = validator.validate(self._model([ref("orders", "status"), ref("order_items", "quantity")]))
        assert types_of(issues) == [InvalidGroupBy]
        assert issues[0].column == "order_items.quantity"
        assert issues[0].reason == GroupByReason.WRONGLY_INCLUDED

    def test_unknown_having_target(self, validator):
        model = self._model(
            [ref("orders", "status")],
            having_conditions=[HavingCondition(target="total", operator=">", value=1)],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [InvalidGroupBy]
        assert issues[0].reason == GroupByReason.UNKNOWN_HAVING_TARGET

    def test_aggregate_input_selected(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "status"),
                col("order_items", "quantity", is_aggregate_only=True),
            ],
            joins=[join("orders.id", "order_items.order_id")],
            group_by=GroupByClause(
                group_by_columns=[ref("orders", "status")],
                aggregate_functions=[AggregateFunction(column=ref("order_items", "quantity"), function="SUM")],
            ),
        )
        issues = validator.validate(model)
        assert [i.reason for i in issues] == [GroupByReason.AGGREGATE_INPUT_SELECTED]

    def test_expression_without_aggregate(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "status"),
                col("order_items", "quantity", is_selected=False, is_aggregate_only=True),
            ],
            joins=[join("orders.id", "order_items.order_id")],
            group_by=GroupByClause(
                group_by_columns=[ref("orders", "status")],
                aggregate_expressions=[AggregateExpression(raw_expression="order_items.quantity * 2", alias="q")],
            ),
        )
        issues = validator.validate(model)
        assert [i.reason for i in issues] == [GroupByReason.NOT_AN_AGGREGATE]

    def test_order_by_column_must_be_grouped(self, validator):
        model = self._model([ref("orders", "status")])
        model.order_by = [ColumnOrder(column=ref("orders", "created_at"))]
        issues = validator.validate(model)
        assert types_of(issues) == [InvalidGroupBy]
        assert issues[0].column == "orders.created_at"
        assert issues[0].reason == GroupByReason.ORDER_BY_NOT_GROUPED

    def test_order_by_grouped_column_and_alias(self, validator):
        model = self._model([ref("orders", "status")])
        model.order_by = [ColumnOrder(column=ref("orders", "status")), AliasOrder(alias="sum_quantity")]
        assert validator.validate(model) == []

    def test_ungrouped_order_by_without_aggregation(self, validator):
        model = QueryModel(
            columns=[col("orders", "status")],
            order_by=[ColumnOrder(column=ref("orders", "created_at"))],
        )
        assert validator.validate(model) == []

    def test_calculated_column_reference_must_be_grouped(self, validator):
        model = self._model([ref("orders", "status")])
        model.calculated_columns = [CalculatedColumn(expression="orders.customer_id * 2", alias="doubled")]
        issues = validator.validate(model)
        assert types_of(issues) == [InvalidGroupBy]
        assert issues[0].column == "orders.customer_id"
        assert issues[0].reason == GroupByReason.MISSING_FROM_GROUP_BY


class TestExpressions:
    def test_server_function_in_aggregate_expression(self, validator):
        model = QueryModel(
            columns=[col("orders", "status")],
            group_by=GroupByClause(
                group_by_columns=[ref("orders", "status")],
                aggregate_expressions=[
                    AggregateExpression(
                        raw_expression="MAX(pg_read_file('/etc/passwd')) + COUNT(orders.id)", alias="leak"
                    )
                ],
            ),
        )
        issues = validator.validate(model)
        assert types_of(issues) == [InvalidExpression]
        assert issues[0].alias == "leak"
        assert issues[0].reason == ExpressionReason.DISALLOWED_CONSTRUCT
        assert issues[0].constructs == ["PG_READ_FILE"]

    def test_allowed_aggregate_expression(self, validator):
        model = QueryModel(
            columns=[col("orders", "status")],
            group_by=GroupByClause(
                group_by_columns=[ref("orders", "status")],
                aggregate_expressions=[
                    AggregateExpression(
                        raw_expression="ROUND(COUNT(DISTINCT orders.customer_id) * 1.0 / NULLIF(COUNT(*), 0), 2)",
                        alias="customer_ratio",
                    )
                ],
            ),
        )
        assert validator.validate(model) == []

    def test_calculated_column(self, validator):
        model = QueryModel(
            columns=[col("products", "name")],
            calculated_columns=[CalculatedColumn(expression="ROUND(products.price * 1.2, 2)", alias="gross_price")],
        )
        assert validator.validate(model) == []

    def test_calculated_column_alone_is_a_selection(self, validator):
        model = QueryModel(
            columns=[col("products", "price", is_selected=False)],
            calculated_columns=[CalculatedColumn(expression="products.price * 2", alias="double_price")],
        )
        assert validator.validate(model) == []

    def test_server_function_in_calculated_column(self, validator):
        model = QueryModel(
            columns=[col("products", "name")],
            calculated_columns=[CalculatedColumn(expression="products.price + pg_sleep(10)", alias="slow")],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [InvalidExpression]
        assert issues[0].reason == ExpressionReason.DISALLOWED_CONSTRUCT
        assert issues[0].constructs == ["PG_SLEEP"]

    def test_aggregate_in_calculated_column(self, validator):
        model = QueryModel(
            columns=[col("products", "name")],
            calculated_columns=[CalculatedColumn(expression="SUM(products.price)", alias="total")],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [InvalidExpression]
        assert issues[0].reason == ExpressionReason.AGGREGATE_NOT_ALLOWED

    def test_calculated_column_unknown_column(self, validator):
        model = QueryModel(
            columns=[col("products", "name")],
            calculated_columns=[CalculatedColumn(expression="products.weight * 2", alias="w")],
        )
        issues = validator.validate(model)
        assert types_of(issues) == [UnknownColumn]
        assert issues[0].location == "calculated_columns[0]"

    def test_transform_fits_column_type(self, validator):
        model = QueryModel(
            columns=[
                col("orders", "created_at", transform="year"),
                col("customers", "email", transform="LOWER"),
            ],
            joins=[join("orders.customer_id", "customers.id")],
        )
        assert validator.validate(model) == []

    def test_transform_type_mismatch(self, validator):
        model = QueryModel(columns=[col("customers", "name", transform="YEAR")])
        issues = validator.validate(model)
        assert types_of(issues) == [InvalidExpression]
        assert issues[0].alias == "year_name"
        assert issues[0].reason == ExpressionReason.TRANSFORM_TYPE_MISMATCH
        assert issues[0].expression == "YEAR(customers.name)"


def test_issue_serialization():
    issue = InvalidGroupBy(column="orders.status", reason=GroupByReason.MISSING_FROM_GROUP_BY)
    data = issue.to_dict()
    assert data["type"] == ValidationErrorType.INVALID_GROUP_BY.value
    assert data["details"] == {"column": "orders.status", "reason": "missing_from_group_by"}
    assert "orders.status" in data["message"]
