"""
Join suggestion models for the internal API contract
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Literal


class JoinSuggestionOut(BaseModel):
    """One inferred equality join (left = referencing side)"""
    id: str
    key: str
    left_schema: str
    left_table: str
    left_column: str
    left_type: str
    left_logical_name: str = ""
    right_schema: str
    right_table: str
    right_column: str
    right_type: str
    right_logical_name: str = ""
    join_type: str = "equality"
    confidence: float = Field(..., ge=0.0, le=1.0)
    confidence_level: Literal["high", "medium", "low"]
    low_confidence: bool
    reasoning: str
    is_junction: bool
    patterns: List[str]
    suggested_join_kind: str
    cardinality: str


class JunctionTableOut(BaseModel):
    schema_name: str = Field(..., alias="schema")
    table: str
    foreign_key_columns: List[str]
    referenced_tables: List[str]
    bridged_pairs: List[List[str]]

    model_config = {"populate_by_name": True}


class SuggestionMetadata(BaseModel):
    total_tables: int
    total_suggestions: int
    by_confidence: Dict[str, int]
    junction_tables: List[JunctionTableOut]
    processing_time_ms: float
    cache_hit: bool
    metadata_available: bool


class JoinSuggestionsResponse(BaseModel):
    data_source_id: int
    schema_name: str
    suggestions: List[JoinSuggestionOut]
    metadata: SuggestionMetadata

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "data_source_id": 2,
                    "schema_name": "public",
                    "suggestions": [
                        {
                            "id": "js_1f0c3e9a2b7d4c11",
                            "key": "public.order_items.order_id::public.orders.id",
                            "left_schema": "public",
                            "left_table": "order_items",
                            "left_column": "order_id",
                            "left_type": "INTEGER",
                            "right_schema": "public",
                            "right_table": "orders",
                            "right_column": "id",
                            "right_type": "INTEGER",
                            "confidence": 1.0,
                            "confidence_level": "high",
                            "low_confidence": False,
                            "reasoning": "'order_id' references 'orders' (exact name match)",
                            "is_junction": True,
                            "patterns": ["exact-name-match", "type-match", "primary-key", "id-suffix", "junction"],
                            "suggested_join_kind": "LEFT",
                            "cardinality": "N:1",
                        }
                    ],
                    "metadata": {
                        "total_tables": 3,
                        "total_suggestions": 2,
                        "by_confidence": {"high": 2, "medium": 0, "low": 0},
                        "junction_tables": [],
                        "processing_time_ms": 1.2,
                        "cache_hit": False,
                        "metadata_available": True,
                    },
                }
            ]
        }
    }


class SchemaEvent(BaseModel):
    """
    Schema-affecting ingestion event

    Any event invalidates the cached suggestions of the schema.
    """
    event: Literal[
        "table_created",
        "table_dropped",
        "table_altered",
        "data_source_synced",
        "data_source_deleted",
    ]
    tables: List[str] = Field(default_factory=list)


class SchemaEventResponse(BaseModel):
    data_source_id: int
    schema_name: str
    event: str
    invalidated: int
