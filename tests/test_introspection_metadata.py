"""
Tests for schema introspection and the metadata resolver against SQLite.
"""

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import CompileError
from sqlalchemy.types import Integer, UserDefinedType

from conftest import create_sqlite_engine
from joinengine.schema.introspection import SchemaIntrospector, _type_name
from joinengine.schema.metadata import MetadataResolver, build_logical_name
from joinengine.utils.errors import MetadataUnavailable, SchemaIntrospectionError


class TestMetadataResolver:
    def test_resolves_logical_names(self, sqlite_engine):
        logical = MetadataResolver(sqlite_engine, "dra_table_metadata").resolve(1, "main")

        assert set(logical) == {"customers", "orders", "products", "order_items"}
        assert logical["orders"].name == "orders"
        assert logical["orders"].display_name == "Orders - shop.xlsx"
        assert logical["order_items"].name == "orderitems"
        assert "orderitem" in logical["order_items"].variants

    def test_unknown_data_source_is_empty(self, sqlite_engine):
        assert MetadataResolver(sqlite_engine, "dra_table_metadata").resolve(99, "main") == {}

    def test_missing_store_raises(self, sqlite_engine):
        with pytest.raises(MetadataUnavailable) as exc_info:
            MetadataResolver(sqlite_engine, "no_such_table").resolve(1, "main")
        assert exc_info.value.data_source_id == 1

    def test_build_logical_name_rejects_empty(self):
        assert build_logical_name("ds1_x", ".csv") is None
        assert build_logical_name("ds1_x", "Customers.csv").name == "customers"


class TestSchemaIntrospector:
    def test_lists_tables_sorted(self, sqlite_engine):
        tables = SchemaIntrospector(sqlite_engine).list_tables("main")
        assert tables == sorted(tables)
        assert "orders" in tables

    def test_snapshot_excludes_metadata_table(self, sqlite_engine):
        snapshot = SchemaIntrospector(sqlite_engine, metadata_table="dra_table_metadata").snapshot(2, "main")
        names = [t.name for t in snapshot.tables]
        assert names == ["customers", "order_items", "orders", "products"]
        assert all(not t.logical_from_metadata for t in snapshot.tables)

    def test_columns_keys_and_indexes(self, sqlite_engine):
        snapshot = SchemaIntrospector(sqlite_engine).snapshot(2, "main")
        orders = snapshot.table("main", "orders")

        assert [c.name for c in orders.columns] == ["id", "customer_id", "status", "created_at"]
        assert orders.primary_key_column.name == "id"
        pk = orders.column("id")
        assert pk.looks_like_pk and pk.unique and pk.indexed
        fk = orders.column("customer_id")
        assert fk.looks_like_fk and fk.indexed and not fk.looks_like_pk
        assert orders.column("status").data_type.upper() == "TEXT"

    def test_scoped_to_metadata_tables(self, sqlite_engine):
        with sqlite_engine.begin() as conn:
            conn.execute(text("CREATE TABLE audit_log (id INTEGER PRIMARY KEY, message TEXT)"))
        logical = MetadataResolver(sqlite_engine, "dra_table_metadata").resolve(1, "main")

        snapshot = SchemaIntrospector(sqlite_engine).snapshot(1, "main", logical)

        names = {t.name for t in snapshot.tables}
        assert "audit_log" not in names
        assert snapshot.table("main", "order_items").logical_name == "orderitems"
        assert snapshot.table("main", "order_items").logical_from_metadata

    def test_max_tables_cap(self, sqlite_engine):
        snapshot = SchemaIntrospector(sqlite_engine, max_tables=2).snapshot(2, "main")
        assert len(snapshot.tables) == 2

    def test_declared_foreign_keys(self, tmp_path):
        engine = create_sqlite_engine(tmp_path / "fk.db")
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE customers (id INTEGER PRIMARY KEY)"))
            conn.execute(
                text("CREATE TABLE invoices (id INTEGER PRIMARY KEY, billed_to INTEGER REFERENCES customers(id))")
            )

        snapshot = SchemaIntrospector(engine).snapshot(1, "main")
        invoices = snapshot.table("main", "invoices")

        assert len(invoices.foreign_keys) == 1
        fk = invoices.foreign_keys[0]
        assert (fk.column, fk.referred_table, fk.referred_column) == ("billed_to", "customers", "id")
        engine.dispose()

    def test_unreachable_database(self, tmp_path):
        engine = create_sqlite_engine(tmp_path / "missing" / "target.db")
        with pytest.raises(SchemaIntrospectionError):
            SchemaIntrospector(engine).list_tables("main")

    def test_describe_table_without_declared_pk(self, sqlite_engine):
        with sqlite_engine.begin() as conn:
            conn.execute(text("CREATE TABLE ds1_raw (id INTEGER, order_id INTEGER)"))
        inspector = inspect(sqlite_engine)

        table = SchemaIntrospector(sqlite_engine).describe_table(inspector, "main", "ds1_raw")

        assert table.column("id").looks_like_pk
        assert not table.column("order_id").looks_like_pk


class GeometryType(UserDefinedType):
    cache_ok = True

    def __str__(self):
        raise CompileError("no dialect for geometry")


class TestTypeName:
    def test_declared_type(self):
        assert _type_name({"type": Integer()}) == "INTEGER"

    def test_uncompilable_type_falls_back_to_class_name(self):
        assert _type_name({"type": GeometryType()}) == "geometrytype"

    def test_other_errors_propagate(self):
        class Broken:
            def __str__(self):
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            _type_name({"type": Broken()})
