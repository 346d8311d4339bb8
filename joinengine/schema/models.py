"""
Schema snapshot data models

TableInfo / ColumnInfo are derived once per schema snapshot from introspection
plus the metadata side table, and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

from joinengine.schema.naming import base_type, compact, name_variants


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    data_type: str
    looks_like_fk: bool = False
    looks_like_pk: bool = False
    indexed: bool = False
    unique: bool = False
    nullable: bool = True

    @property
    def base_type(self) -> str:
        return base_type(self.data_type)


@dataclass(frozen=True)
class LogicalName:
    """Cleaned logical name of a physical table plus its matching variants"""
    physical_name: str
    display_name: str
    name: str
    variants: FrozenSet[str]


@dataclass(frozen=True)
class DeclaredForeignKey:
    column: str
    referred_schema: str
    referred_table: str
    referred_column: str


@dataclass(frozen=True)
class TableInfo:
    """
    A table of one schema snapshot.

    Attributes:
        schema: Schema the physical table lives in
        name: Physical table identifier (e.g. "ds2_42d115c3" or "orders")
        logical_name: Compact logical name (from metadata, else the physical name)
        columns: Ordered column descriptions
        physical_variants: Compact/singular/plural forms of the physical name
        logical_variants: Compact/singular/plural forms of the logical name
        logical_from_metadata: True when logical_name came from the metadata store
        foreign_keys: Declared FK constraints reported by the database, if any
    """
    schema: str
    name: str
    logical_name: str
    columns: Tuple[ColumnInfo, ...]
    physical_variants: FrozenSet[str] = frozenset()
    logical_variants: FrozenSet[str] = frozenset()
    logical_from_metadata: bool = False
    display_name: Optional[str] = None
    foreign_keys: Tuple[DeclaredForeignKey, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"

    def column(self, name: str) -> Optional[ColumnInfo]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @property
    def primary_key_columns(self) -> Tuple[ColumnInfo, ...]:
        return tuple(c for c in self.columns if c.looks_like_pk)

    @property
    def primary_key_column(self) -> Optional[ColumnInfo]:
        """Single join target column: declared/inferred PK, falling back to `id`"""
        pks = self.primary_key_columns
        if len(pks) == 1:
            return pks[0]
        for col in self.columns:
            if col.name.lower() == "id":
                return col
        return None

    @classmethod
    def build(
        cls,
        schema: str,
        name: str,
        columns: Tuple[ColumnInfo, ...],
        logical: Optional[LogicalName] = None,
        foreign_keys: Tuple[DeclaredForeignKey, ...] = (),
    ) -> "TableInfo":
        """Assemble a TableInfo, falling back to the physical name when no logical name is known"""
        physical_variants = name_variants(name)
        if logical is not None and logical.name:
            return cls(
                schema=schema,
                name=name,
                logical_name=logical.name,
                columns=tuple(columns),
                physical_variants=physical_variants,
                logical_variants=logical.variants,
                logical_from_metadata=True,
                display_name=logical.display_name,
                foreign_keys=tuple(foreign_keys),
            )
        return cls(
            schema=schema,
            name=name,
            logical_name=compact(name),
            columns=tuple(columns),
            physical_variants=physical_variants,
            logical_variants=physical_variants,
            logical_from_metadata=False,
            display_name=name,
            foreign_keys=tuple(foreign_keys),
        )


@dataclass(frozen=True)
class SchemaSnapshot:
    """All tables of one (data source, schema) at introspection time"""
    data_source_id: int
    schema_name: str
    tables: Tuple[TableInfo, ...]
    metadata_available: bool = True
    _index: Dict[Tuple[str, str], TableInfo] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        self._index.update({(t.schema, t.name): t for t in self.tables})

    def table(self, schema: str, name: str) -> Optional[TableInfo]:
        return self._index.get((schema, name))

    def column(self, schema: str, table: str, column: str) -> Optional[ColumnInfo]:
        info = self.table(schema, table)
        return info.column(column) if info else None
