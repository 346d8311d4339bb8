"""
Query model validation
"""

from joinengine.validation.errors import (
    ValidationErrorType,
    ValidationIssue,
    UnknownColumn,
    AliasConflict,
    EmptySelection,
    UnrecognizedJoin,
    BrokenJoinChain,
    OrphanedTables,
    InvalidGroupBy,
    InvalidExpression,
)
from joinengine.validation.validator import ModelValidator

__all__ = [
    "ValidationErrorType",
    "ValidationIssue",
    "UnknownColumn",
    "AliasConflict",
    "EmptySelection",
    "UnrecognizedJoin",
    "BrokenJoinChain",
    "OrphanedTables",
    "InvalidGroupBy",
    "InvalidExpression",
    "ModelValidator",
]
