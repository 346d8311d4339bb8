"""
Schema introspection via SQLAlchemy inspector.

Produces the immutable TableInfo / ColumnInfo snapshot the inference engine and
the model validator work on:
- tables + columns with declared types
- primary keys, indexes, unique constraints/indexes
- declared foreign keys (rare for ingested sources, used when present)
"""

from typing import Dict, List, Mapping, Optional, Set

from loguru import logger
from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import CompileError, SQLAlchemyError

from joinengine.config.settings import settings
from joinengine.schema.models import (
    ColumnInfo,
    DeclaredForeignKey,
    LogicalName,
    SchemaSnapshot,
    TableInfo,
)
from joinengine.schema.naming import is_bare_id, looks_like_foreign_key
from joinengine.utils.errors import SchemaIntrospectionError


def _type_name(column: Mapping) -> str:
    try:
        return str(column.get("type"))
    except CompileError:
        # Some dialect-specific types cannot be compiled without a dialect
        return type(column.get("type")).__name__.lower()


def get_unique_columns(inspector, table: str, schema: str) -> Set[str]:
    """
    Return the set of columns that are uniquely constrained in the table.
    Uses unique constraints + unique indexes.
    """
    unique_cols: Set[str] = set()

    for uc in inspector.get_unique_constraints(table, schema=schema) or []:
        cols = uc.get("column_names") or []
        if len(cols) == 1:
            unique_cols.add(cols[0])

    for idx in inspector.get_indexes(table, schema=schema) or []:
        cols = [c for c in idx.get("column_names") or [] if c]
        if idx.get("unique") and len(cols) == 1:
            unique_cols.add(cols[0])

    return unique_cols


def get_indexed_columns(inspector, table: str, schema: str) -> Set[str]:
    indexed: Set[str] = set()
    for idx in inspector.get_indexes(table, schema=schema) or []:
        for col in idx.get("column_names") or []:
            if col:
                indexed.add(col)
    return indexed


class SchemaIntrospector:
    """
    Builds TableInfo snapshots from the live target database.

    All inspector failures surface as SchemaIntrospectionError: without the
    live schema neither inference nor validation can proceed.
    """

    def __init__(self, engine: Engine, max_tables: Optional[int] = None, metadata_table: Optional[str] = None):
        self.engine = engine
        self.max_tables = max_tables or settings.max_tables
        self.metadata_table = metadata_table or settings.metadata_table

    def list_tables(self, schema: str) -> List[str]:
        try:
            return sorted(inspect(self.engine).get_table_names(schema=schema))
        except SQLAlchemyError as e:
            raise SchemaIntrospectionError(f"Could not list tables of schema '{schema}': {e}") from e

    def describe_table(
        self,
        inspector,
        schema: str,
        table: str,
        logical: Optional[LogicalName] = None,
    ) -> TableInfo:
        columns = inspector.get_columns(table, schema=schema)
        pk = inspector.get_pk_constraint(table, schema=schema) or {}
        pk_cols = [c for c in pk.get("constrained_columns") or [] if c]
        unique_cols = get_unique_columns(inspector, table, schema)
        indexed_cols = get_indexed_columns(inspector, table, schema)

        if len(pk_cols) == 1:
            unique_cols.add(pk_cols[0])
        indexed_cols.update(pk_cols)

        column_infos = []
        for col in columns:
            name = col["name"]
            if pk_cols:
                is_pk = name in pk_cols
            else:
                # No declared PK (typical for ingested sources): bare id stands in
                is_pk = is_bare_id(name)
            column_infos.append(
                ColumnInfo(
                    name=name,
                    data_type=_type_name(col),
                    looks_like_fk=looks_like_foreign_key(name),
                    looks_like_pk=is_pk,
                    indexed=name in indexed_cols,
                    unique=name in unique_cols,
                    nullable=bool(col.get("nullable", True)),
                )
            )

        foreign_keys = []
        for fk in inspector.get_foreign_keys(table, schema=schema) or []:
            ref_table = fk.get("referred_table")
            ref_cols = fk.get("referred_columns") or []
            src_cols = fk.get("constrained_columns") or []
            # Composite FKs with mismatched column lists are skipped
            if not ref_table or not ref_cols or len(ref_cols) != len(src_cols):
                continue
            for src_col, ref_col in zip(src_cols, ref_cols):
                foreign_keys.append(
                    DeclaredForeignKey(
                        column=src_col,
                        referred_schema=fk.get("referred_schema") or schema,
                        referred_table=ref_table,
                        referred_column=ref_col,
                    )
                )

        return TableInfo.build(
            schema=schema,
            name=table,
            columns=tuple(column_infos),
            logical=logical,
            foreign_keys=tuple(foreign_keys),
        )

    def snapshot(
        self,
        data_source_id: int,
        schema_name: str,
        logical_names: Optional[Dict[str, LogicalName]] = None,
        metadata_available: bool = True,
    ) -> SchemaSnapshot:
        """
        Introspect the tables of one data source.

        When logical_names lists tables for the data source, only those physical
        tables are described. Otherwise the whole schema is, capped at max_tables.

        Raises:
            SchemaIntrospectionError: target database unreachable or inspector failed
        """
        logical_names = logical_names or {}
        available = [t for t in self.list_tables(schema_name) if t != self.metadata_table]

        if logical_names:
            selected = [t for t in available if t in logical_names]
            missing = sorted(set(logical_names) - set(available))
            if missing:
                logger.warning(
                    f"{len(missing)} metadata tables not found in schema '{schema_name}': {missing[:5]}"
                )
        else:
            selected = available

        if len(selected) > self.max_tables:
            logger.warning(
                f"Schema '{schema_name}' has {len(selected)} tables, analysing first {self.max_tables}"
            )
            selected = selected[: self.max_tables]

        try:
            inspector = inspect(self.engine)
            tables = tuple(
                self.describe_table(inspector, schema_name, t, logical_names.get(t))
                for t in selected
            )
        except SQLAlchemyError as e:
            raise SchemaIntrospectionError(
                f"Could not introspect schema '{schema_name}' for data source {data_source_id}: {e}"
            ) from e

        logger.info(f"Introspected {len(tables)} tables for ds{data_source_id}:{schema_name}")
        return SchemaSnapshot(
            data_source_id=data_source_id,
            schema_name=schema_name,
            tables=tables,
            metadata_available=metadata_available,
        )

