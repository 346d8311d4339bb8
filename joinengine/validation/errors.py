"""
Query model validation issue definitions.

Validation never raises for a bad model: every problem is described by a
typed issue and the validator returns the complete list. Issues are
serializable for the API (`to_dict`).
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List


class ValidationErrorType(Enum):
    """
    Semantic validation issue types.
    """
    # Existence (fail-fast)
    UNKNOWN_COLUMN = "unknown_column"
    ALIAS_CONFLICT = "alias_conflict"
    EMPTY_SELECTION = "empty_selection"

    # Join legitimacy / structure
    UNRECOGNIZED_JOIN = "unrecognized_join"
    BROKEN_JOIN_CHAIN = "broken_join_chain"
    ORPHANED_TABLES = "orphaned_tables"

    # Projection / aggregation
    INVALID_GROUP_BY = "invalid_group_by"
    INVALID_EXPRESSION = "invalid_expression"


class UnknownColumnReason:
    NOT_IN_SCHEMA = "not_in_schema"
    TABLE_NOT_IN_COLUMNS = "table_not_in_columns"
    UNKNOWN_ALIAS = "unknown_alias"
    UNRESOLVED_REFERENCE = "unresolved_reference"


class GroupByReason:
    MISSING_FROM_GROUP_BY = "missing_from_group_by"
    WRONGLY_INCLUDED = "wrongly_included"
    AGGREGATE_INPUT_SELECTED = "aggregate_input_selected"
    UNKNOWN_HAVING_TARGET = "unknown_having_target"
    NOT_AN_AGGREGATE = "not_an_aggregate"
    ORDER_BY_NOT_GROUPED = "order_by_not_grouped"


class ExpressionReason:
    DISALLOWED_CONSTRUCT = "disallowed_construct"
    AGGREGATE_NOT_ALLOWED = "aggregate_not_allowed"
    TRANSFORM_TYPE_MISMATCH = "transform_type_mismatch"


@dataclass
class ValidationIssue:
    """
    Base of all validation issues.

    Attributes:
        error_type: Semantic issue type (set by each subclass)
        message: Human-readable description
    """
    error_type: ValidationErrorType = field(init=False)
    message: str = field(init=False, default="")

    @property
    def details(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.init}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.message})"


@dataclass
class UnknownColumn(ValidationIssue):
    table: str
    column: str
    schema_name: str = ""
    reason: str = UnknownColumnReason.NOT_IN_SCHEMA
    location: str = ""

    def __post_init__(self):
        self.error_type = ValidationErrorType.UNKNOWN_COLUMN
        where = f" in {self.location}" if self.location else ""
        self.message = f"Unknown column {self.table}.{self.column}{where} ({self.reason})"


@dataclass
class AliasConflict(ValidationIssue):
    alias: str
    tables: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.error_type = ValidationErrorType.ALIAS_CONFLICT
        self.message = f"Alias '{self.alias}' refers to more than one thing: {', '.join(self.tables)}"


@dataclass
class EmptySelection(ValidationIssue):
    def __post_init__(self):
        self.error_type = ValidationErrorType.EMPTY_SELECTION
        self.message = "Query model selects no columns and no aggregates"


@dataclass
class UnrecognizedJoin(ValidationIssue):
    left: str
    right: str
    join_index: int = 0
    reason: str = "no_matching_suggestion"

    def __post_init__(self):
        self.error_type = ValidationErrorType.UNRECOGNIZED_JOIN
        self.message = f"Join #{self.join_index} {self.left} = {self.right} is not a recognized relationship ({self.reason})"


@dataclass
class BrokenJoinChain(ValidationIssue):
    join_index: int
    join: str
    reason: str

    def __post_init__(self):
        self.error_type = ValidationErrorType.BROKEN_JOIN_CHAIN
        self.message = f"Join #{self.join_index} ({self.join}) cannot be rendered in order: {self.reason}"


@dataclass
class OrphanedTables(ValidationIssue):
    tables: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.error_type = ValidationErrorType.ORPHANED_TABLES
        self.message = f"Tables not connected by any join: {', '.join(self.tables)}"


@dataclass
class InvalidGroupBy(ValidationIssue):
    column: str
    reason: str

    def __post_init__(self):
        self.error_type = ValidationErrorType.INVALID_GROUP_BY
        self.message = f"Invalid GROUP BY for {self.column}: {self.reason}"


@dataclass
class InvalidExpression(ValidationIssue):
    """A calculated column, raw aggregate expression or column transform that cannot be rendered safely"""
    alias: str
    expression: str
    reason: str
    constructs: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.error_type = ValidationErrorType.INVALID_EXPRESSION
        found = f" [{', '.join(self.constructs)}]" if self.constructs else ""
        self.message = f"Invalid expression for {self.alias} ({self.reason}){found}: {self.expression}"
