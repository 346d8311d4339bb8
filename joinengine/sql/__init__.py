"""
SQL layer - expression analysis and query compilation
"""

from joinengine.sql.compiler import CompiledQuery, SQLCompiler

__all__ = [
    "CompiledQuery",
    "SQLCompiler",
]
