"""
Schema layer - live table descriptions and logical names
"""

from joinengine.schema.models import (
    ColumnInfo,
    DeclaredForeignKey,
    LogicalName,
    SchemaSnapshot,
    TableInfo,
)
from joinengine.schema.metadata import MetadataResolver, build_logical_name
from joinengine.schema.introspection import SchemaIntrospector

__all__ = [
    "ColumnInfo",
    "DeclaredForeignKey",
    "LogicalName",
    "SchemaSnapshot",
    "TableInfo",
    "MetadataResolver",
    "build_logical_name",
    "SchemaIntrospector",
]
