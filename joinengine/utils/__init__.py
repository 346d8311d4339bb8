"""
Shared utilities - logging and errors
"""

from joinengine.utils.errors import (
    EngineError,
    MetadataUnavailable,
    SchemaIntrospectionError,
    CompilationError,
)

__all__ = [
    "EngineError",
    "MetadataUnavailable",
    "SchemaIntrospectionError",
    "CompilationError",
]
