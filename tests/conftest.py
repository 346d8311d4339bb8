"""
Shared fixtures: in-memory schema snapshots for inference/validation tests and
a file-backed SQLite database for introspection, service and API tests.
"""

from typing import Optional, Sequence, Union

import pytest
from sqlalchemy import create_engine, text

from joinengine.inference.engine import JoinInferenceEngine
from joinengine.inference.scoring import ScoringWeights
from joinengine.schema.metadata import build_logical_name
from joinengine.schema.models import ColumnInfo, DeclaredForeignKey, SchemaSnapshot, TableInfo
from joinengine.schema.naming import looks_like_foreign_key

ColumnSpec = Union[str, tuple, ColumnInfo]


def make_column(
    name: str,
    data_type: str = "INTEGER",
    pk: bool = False,
    indexed: bool = False,
    unique: bool = False,
) -> ColumnInfo:
    return ColumnInfo(
        name=name,
        data_type=data_type,
        looks_like_fk=looks_like_foreign_key(name),
        looks_like_pk=pk,
        indexed=indexed or pk,
        unique=unique or pk,
    )


def make_table(
    name: str,
    columns: Sequence[ColumnSpec],
    schema: str = "public",
    display_name: Optional[str] = None,
    foreign_keys: Sequence[DeclaredForeignKey] = (),
) -> TableInfo:
    """
    Columns are names (INTEGER, `id` is the primary key), (name, type) tuples
    or ready ColumnInfo values.
    """
    built = []
    for spec in columns:
        if isinstance(spec, ColumnInfo):
            built.append(spec)
        elif isinstance(spec, tuple):
            built.append(make_column(spec[0], spec[1], pk=spec[0] == "id"))
        else:
            built.append(make_column(spec, pk=spec == "id"))
    logical = build_logical_name(name, display_name) if display_name else None
    return TableInfo.build(schema, name, tuple(built), logical=logical, foreign_keys=tuple(foreign_keys))


@pytest.fixture
def commerce_tables():
    return (
        make_table("customers", ["id", ("name", "TEXT"), ("email", "TEXT")]),
        make_table("orders", ["id", "customer_id", ("status", "TEXT"), ("created_at", "TIMESTAMP")]),
        make_table("products", ["id", ("name", "TEXT"), ("price", "NUMERIC(10, 2)")]),
        make_table("order_items", ["id", "order_id", "product_id", "quantity"]),
        make_table("users", ["id", ("name", "TEXT"), "manager_id"]),
    )


@pytest.fixture
def commerce_snapshot(commerce_tables):
    return SchemaSnapshot(data_source_id=1, schema_name="public", tables=commerce_tables)


@pytest.fixture
def commerce_result(commerce_tables):
    return JoinInferenceEngine(ScoringWeights()).infer(commerce_tables)


@pytest.fixture
def commerce_suggestions(commerce_result):
    return commerce_result.suggestions


# ----------------------------------------------------------------------------
# SQLite target database
# ----------------------------------------------------------------------------

SQLITE_DDL = [
    "CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT, email TEXT)",
    "CREATE TABLE orders (id INTEGER PRIMARY KEY, customer_id INTEGER, status TEXT, created_at TIMESTAMP)",
    "CREATE INDEX ix_orders_customer_id ON orders (customer_id)",
    "CREATE TABLE products (id INTEGER PRIMARY KEY, name TEXT, price NUMERIC(10, 2))",
    "CREATE TABLE order_items (id INTEGER PRIMARY KEY, order_id INTEGER, product_id INTEGER, quantity INTEGER)",
    "CREATE TABLE dra_table_metadata ("
    " id INTEGER PRIMARY KEY,"
    " data_source_id INTEGER,"
    " schema_name TEXT,"
    " physical_table_name TEXT,"
    " logical_table_name TEXT)",
]

SQLITE_METADATA = [
    (1, "main", "customers", "Customers.csv"),
    (1, "main", "orders", "Orders - shop.xlsx"),
    (1, "main", "products", "Products.csv"),
    (1, "main", "order_items", "Order Items.csv"),
]


def create_sqlite_engine(path):
    return create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = create_sqlite_engine(tmp_path / "target.db")
    with engine.begin() as conn:
        for ddl in SQLITE_DDL:
            conn.execute(text(ddl))
        for ds, schema, physical, logical in SQLITE_METADATA:
            conn.execute(
                text(
                    "INSERT INTO dra_table_metadata "
                    "(data_source_id, schema_name, physical_table_name, logical_table_name) "
                    "VALUES (:ds, :schema, :physical, :logical)"
                ),
                {"ds": ds, "schema": schema, "physical": physical, "logical": logical},
            )
    yield engine
    engine.dispose()
