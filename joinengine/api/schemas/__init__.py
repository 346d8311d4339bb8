"""
API schemas for the internal service contract
"""

from joinengine.api.schemas.health import HealthResponse
from joinengine.api.schemas.suggestions import (
    JoinSuggestionOut,
    JunctionTableOut,
    SuggestionMetadata,
    JoinSuggestionsResponse,
    SchemaEvent,
    SchemaEventResponse,
)
from joinengine.api.schemas.query_models import (
    CompileRequest,
    CompileResponse,
    ValidateResponse,
    ValidationIssueOut,
)

__all__ = [
    "HealthResponse",
    "JoinSuggestionOut",
    "JunctionTableOut",
    "SuggestionMetadata",
    "JoinSuggestionsResponse",
    "SchemaEvent",
    "SchemaEventResponse",
    "CompileRequest",
    "CompileResponse",
    "ValidateResponse",
    "ValidationIssueOut",
]
