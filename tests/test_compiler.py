"""
Tests for SQL compilation of validated query models.
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
    JoinPredicate,
    MembershipFilter,
    NullCheckFilter,
    QueryModel,
    SelectedColumn,
)
from joinengine.sql.compiler import SQLCompiler, quote
from joinengine.utils.errors import CompilationError


def col(table, column, alias=None, table_alias=None, **kwargs):
    return SelectedColumn(
        schema_name="public", table=table, table_alias=table_alias, column=column, alias=alias, **kwargs
    )


def ref(table, column, table_alias=None):
    return ColumnRef(schema_name="public", table=table, table_alias=table_alias, column=column)


@pytest.fixture
def compiler():
    return SQLCompiler()


@pytest.fixture
def aggregate_model():
    return QueryModel(
        columns=[
            col("orders", "status"),
            col("order_items", "quantity", is_selected=False, is_aggregate_only=True),
        ],
        joins=[
            JoinClause(
                left_schema="public",
                left_table="orders",
                left_column="id",
                right_schema="public",
                right_table="order_items",
                right_column="order_id",
            )
        ],
        group_by=GroupByClause(
            group_by_columns=[ref("orders", "status")],
            aggregate_functions=[
                AggregateFunction(column=ref("order_items", "quantity"), function="SUM", alias="total_quantity"),
            ],
            having_conditions=[HavingCondition(target="total_quantity", operator=">", value=10)],
        ),
        filters=[ComparisonFilter(column=ref("orders", "status"), operator="!=", value="cancelled")],
        order_by=[AliasOrder(alias="total_quantity", direction="DESC")],
        limit=5,
    )


def test_full_aggregate_query(compiler, aggregate_model):
    compiled = compiler.compile(aggregate_model)
    assert compiled.sql == "\n".join(
        [
            'SELECT "orders"."status", SUM("order_items"."quantity") AS "total_quantity"',
            'FROM "public"."orders" AS "orders"',
            'INNER JOIN "public"."order_items" AS "order_items" ON "orders"."id" = "order_items"."order_id"',
            'WHERE "orders"."status" != :p0',
            'GROUP BY "orders"."status"',
            'HAVING SUM("order_items"."quantity") > :p1',
            'ORDER BY "total_quantity" DESC',
            "LIMIT 5",
        ]
    )
    assert compiled.params == {"p0": "cancelled", "p1": 10}


def test_compilation_is_idempotent(compiler, aggregate_model):
    first = compiler.compile(aggregate_model)
    second = SQLCompiler().compile(aggregate_model.copy_model())
    assert first.sql == second.sql
    assert first.params == second.params


def test_single_table_without_joins(compiler):
    model = QueryModel(columns=[col("customers", "name", alias="customer"), col("customers", "email")])
    compiled = compiler.compile(model)
    assert compiled.sql == (
        'SELECT "customers"."name" AS "customer", "customers"."email"\n'
        'FROM "public"."customers" AS "customers"'
    )
    assert compiled.params == {}


def test_self_join_renders_two_aliases(compiler):
    model = QueryModel(
        columns=[
            col("users", "name"),
            col("users", "name", alias="manager_name", table_alias="manager"),
        ],
        joins=[
            JoinClause(
                left_schema="public",
                left_table="users",
                left_column="manager_id",
                right_schema="public",
                right_table="users",
                right_alias="manager",
                right_column="id",
                join_kind="left",
                user_authored=True,
            )
        ],
    )
    sql = compiler.compile(model).sql
    assert '"public"."users" AS "users"' in sql
    assert 'LEFT JOIN "public"."users" AS "manager" ON "users"."manager_id" = "manager"."id"' in sql
    assert sql.count(" AS ") == 3


def test_join_written_in_reverse_orientation(compiler):
    model = QueryModel(
        columns=[col("orders", "status"), col("customers", "name")],
        joins=[
            JoinClause(
                left_schema="public",
                left_table="orders",
                left_column="customer_id",
                right_schema="public",
                right_table="customers",
                right_column="id",
            ),
        ],
    )
    sql = compiler.compile(model).sql
    assert 'FROM "public"."orders" AS "orders"' in sql
    assert 'INNER JOIN "public"."customers" AS "customers" ON "orders"."customer_id" = "customers"."id"' in sql


def test_extra_join_predicates(compiler):
    model = QueryModel(
        columns=[col("orders", "status"), col("customers", "name")],
        joins=[
            JoinClause(
                left_schema="public",
                left_table="orders",
                left_column="customer_id",
                right_schema="public",
                right_table="customers",
                right_column="id",
                extra_predicates=[
                    JoinPredicate(
                        logic="and",
                        left_column=ref("orders", "created_at"),
                        operator=">=",
                        right_column=ref("customers", "created_at"),
                    )
                ],
            ),
        ],
    )
    sql = compiler.compile(model).sql
    assert sql.endswith(
        'ON "orders"."customer_id" = "customers"."id" AND "orders"."created_at" >= "customers"."created_at"'
    )


def test_filters_and_params(compiler):
    model = QueryModel(
        columns=[col("orders", "status")],
        filters=[
            MembershipFilter(column=ref("orders", "status"), values=["paid", "shipped"]),
            NullCheckFilter(column=ref("orders", "created_at"), is_null=False, logic="or"),
            MembershipFilter(column=ref("orders", "id"), values=[1], negate=True),
        ],
    )
    compiled = compiler.compile(model)
    assert (
        'WHERE "orders"."status" IN (:p0, :p1) OR "orders"."created_at" IS NOT NULL AND "orders"."id" NOT IN (:p2)'
        in compiled.sql
    )
    assert compiled.params == {"p0": "paid", "p1": "shipped", "p2": 1}


def test_limit_offset_sentinel(compiler):
    model = QueryModel(columns=[col("orders", "status")])
    sql = compiler.compile(model).sql
    assert "LIMIT" not in sql
    assert "OFFSET" not in sql

    model = QueryModel(columns=[col("orders", "status")], limit=0, offset=20)
    sql = compiler.compile(model).sql
    assert sql.endswith("LIMIT 0\nOFFSET 20")


def test_order_by_column(compiler):
    model = QueryModel(
        columns=[col("orders", "status")],
        order_by=[ColumnOrder(column=ref("orders", "created_at"), direction="desc")],
    )
    assert compiler.compile(model).sql.endswith('ORDER BY "orders"."created_at" DESC')


def test_aggregate_expression(compiler):
    model = QueryModel(
        columns=[
            col("orders", "status"),
            col("order_items", "quantity", is_selected=False, is_aggregate_only=True),
            col("products", "price", is_selected=False, is_aggregate_only=True),
        ],
        joins=[
            JoinClause(
                left_schema="public",
                left_table="orders",
                left_column="id",
                right_schema="public",
                right_table="order_items",
                right_column="order_id",
            ),
            JoinClause(
                left_schema="public",
                left_table="order_items",
                left_column="product_id",
                right_schema="public",
                right_table="products",
                right_column="id",
            ),
        ],
        group_by=GroupByClause(
            group_by_columns=[ref("orders", "status")],
            aggregate_expressions=[
                AggregateExpression(raw_expression="SUM([[order_items.quantity]] * [[products.price]])", alias="revenue"),
            ],
        ),
    )
    select = compiler.compile(model).sql.split("\n")[0]
    assert select.startswith('SELECT "orders"."status", SUM(')
    assert '"order_items"."quantity"' in select
    assert '"products"."price"' in select
    assert select.endswith(' AS "revenue"')


def test_distinct_count(compiler):
    model = QueryModel(
        columns=[col("orders", "customer_id", is_selected=False, is_aggregate_only=True)],
        group_by=GroupByClause(
            aggregate_functions=[AggregateFunction(column=ref("orders", "customer_id"), function="count", distinct=True)]
        ),
    )
    sql = compiler.compile(model).sql
    assert sql.startswith('SELECT COUNT(DISTINCT "orders"."customer_id") AS "count_customer_id"')
    assert "GROUP BY" not in sql


def test_unparseable_expression_is_compilation_error(compiler):
    model = QueryModel(
        columns=[col("orders", "status", is_selected=False, is_aggregate_only=True)],
        group_by=GroupByClause(aggregate_expressions=[AggregateExpression(raw_expression="SUM(")]),
    )
    with pytest.raises(CompilationError):
        compiler.compile(model)


def test_calculated_column(compiler):
    model = QueryModel(
        columns=[col("products", "name")],
        calculated_columns=[CalculatedColumn(expression="ROUND(price * 1.2, 2)", alias="gross_price")],
    )
    select = compiler.compile(model).sql.split("\n")[0]
    assert select.startswith('SELECT "products"."name", ROUND(')
    assert '"products"."price" * 1.2' in select
    assert select.endswith(' AS "gross_price"')


def test_transforms_render_with_output_name(compiler):
    model = QueryModel(
        columns=[
            col("orders", "created_at", transform="YEAR"),
            col("orders", "status", alias="state", transform="upper"),
            col("orders", "id"),
        ],
        group_by=GroupByClause(
            group_by_columns=[ref("orders", "created_at"), ref("orders", "status"), ref("orders", "id")],
        ),
    )
    lines = compiler.compile(model).sql.split("\n")
    assert lines[0] == (
        'SELECT EXTRACT(YEAR FROM "orders"."created_at") AS "year_created_at", '
        'UPPER("orders"."status") AS "state", "orders"."id"'
    )
    # Grouping keeps the raw columns
    assert lines[-1] == 'GROUP BY "orders"."created_at", "orders"."status", "orders"."id"'


def test_date_transform(compiler):
    model = QueryModel(columns=[col("orders", "created_at", transform="DATE")])
    assert compiler.compile(model).sql.startswith('SELECT CAST("orders"."created_at" AS DATE) AS "date_created_at"')


def test_disallowed_expression_is_compilation_error(compiler):
    model = QueryModel(
        columns=[col("orders", "status")],
        group_by=GroupByClause(
            group_by_columns=[ref("orders", "status")],
            aggregate_expressions=[AggregateExpression(raw_expression="MAX(pg_read_file('x')) + COUNT(orders.id)")],
        ),
    )
    with pytest.raises(CompilationError, match="PG_READ_FILE"):
        compiler.compile(model)


def test_disallowed_calculated_column_is_compilation_error(compiler):
    model = QueryModel(
        columns=[col("products", "name")],
        calculated_columns=[CalculatedColumn(expression="pg_sleep(10)", alias="slow")],
    )
    with pytest.raises(CompilationError):
        compiler.compile(model)


def test_disconnected_join_is_compilation_error(compiler):
    model = QueryModel(
        columns=[col("orders", "status"), col("products", "name")],
        joins=[
            JoinClause(
                left_schema="public",
                left_table="orders",
                left_column="customer_id",
                right_schema="public",
                right_table="customers",
                right_column="id",
            ),
            JoinClause(
                left_schema="public",
                left_table="order_items",
                left_column="product_id",
                right_schema="public",
                right_table="products",
                right_column="id",
            ),
        ],
    )
    with pytest.raises(CompilationError):
        compiler.compile(model)


def test_quote_escapes_double_quotes():
    assert quote('we"ird') == '"we""ird"'


def test_compiled_query_to_dict(compiler):
    compiled = compiler.compile(QueryModel(columns=[col("orders", "status")]))
    assert compiled.to_dict() == {"sql": compiled.sql, "params": {}}
