"""
Query model compile/validate request and response models
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from joinengine.models.query_model import QueryModel


class CompileRequest(BaseModel):
    """
    Compile a query model for one data source schema

    auto_join: connect selected tables through inferred joins first
    (only tables the model does not already join)
    """
    data_source_id: int
    schema_name: str = "public"
    query_model: QueryModel
    auto_join: bool = False


class ValidationIssueOut(BaseModel):
    type: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class CompileResponse(BaseModel):
    sql: str
    params: Dict[str, Any]
    query_model: Optional[QueryModel] = None


class ValidateResponse(BaseModel):
    valid: bool
    issues: List[ValidationIssueOut]
