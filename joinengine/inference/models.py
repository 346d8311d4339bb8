"""
Inferred join data models
"""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Tuple


def column_key(schema: str, table: str, column: str) -> str:
    """Fully qualified column key: schema.table.column"""
    return f"{schema}.{table}.{column}"


def join_key(left: str, right: str) -> str:
    """
    Unordered key of an equality join between two column keys.

    A.x = B.y and B.y = A.x map to the same key.
    """
    first, second = sorted((left, right))
    return f"{first}::{second}"


def suggestion_id(key: str) -> str:
    return "js_" + hashlib.md5(key.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class JoinSuggestion:
    """
    A proposed equality join between two physical columns.

    Left is the referencing (foreign-key shaped) side, right the referenced
    side. Matching treats both orientations as the same join.
    """
    id: str
    left_schema: str
    left_table: str
    left_column: str
    left_type: str
    right_schema: str
    right_table: str
    right_column: str
    right_type: str
    confidence: float
    confidence_level: str  # "high" | "medium" | "low"
    low_confidence: bool
    reasoning: str
    is_junction: bool = False
    patterns: Tuple[str, ...] = ()
    suggested_join_kind: str = "LEFT"
    cardinality: str = "N:1"  # "N:1" | "1:1" | "N:N"
    left_logical_name: str = ""
    right_logical_name: str = ""
    join_type: str = "equality"

    @property
    def left_key(self) -> str:
        return column_key(self.left_schema, self.left_table, self.left_column)

    @property
    def right_key(self) -> str:
        return column_key(self.right_schema, self.right_table, self.right_column)

    @property
    def key(self) -> str:
        return join_key(self.left_key, self.right_key)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["patterns"] = list(self.patterns)
        data["key"] = self.key
        return data


@dataclass(frozen=True)
class JunctionInfo:
    """A table linking two or more other tables through its resolved FK columns"""
    schema: str
    table: str
    foreign_key_columns: Tuple[str, ...]
    referenced_tables: Tuple[str, ...]
    bridged_pairs: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "table": self.table,
            "foreign_key_columns": list(self.foreign_key_columns),
            "referenced_tables": list(self.referenced_tables),
            "bridged_pairs": [list(pair) for pair in self.bridged_pairs],
        }


@dataclass(frozen=True)
class InferenceResult:
    suggestions: Tuple[JoinSuggestion, ...]
    junctions: Tuple[JunctionInfo, ...] = ()
    total_tables: int = 0
    processing_time_ms: float = 0.0

    def counts_by_level(self) -> Dict[str, int]:
        counts = {"high": 0, "medium": 0, "low": 0}
        for s in self.suggestions:
            counts[s.confidence_level] = counts.get(s.confidence_level, 0) + 1
        return counts
