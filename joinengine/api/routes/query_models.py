"""
Internal query model endpoints

Every query model, whether built manually or proposed by an AI modeler,
passes through the same validator before it is compiled.
"""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from joinengine.api.dependencies import service_dependency
from joinengine.api.schemas.query_models import (
    CompileRequest,
    CompileResponse,
    ValidateResponse,
    ValidationIssueOut,
)
from joinengine.service import JoinEngineService
from joinengine.utils.errors import CompilationError, SchemaIntrospectionError


router = APIRouter(prefix="/internal/query-models", tags=["internal"])


def _schema_unavailable(e: SchemaIntrospectionError) -> HTTPException:
    logger.error(f"Schema introspection failed: {e}")
    return HTTPException(status_code=503, detail={"error": "schema_unavailable", "message": str(e)})


@router.post("/compile", response_model=CompileResponse)
async def compile_query_model(
    request: CompileRequest,
    service: JoinEngineService = Depends(service_dependency),
):
    """
    Validate and compile a query model into parameterized SQL.

    - 200: compiled SQL + bind parameters
    - 422: validation issues (all of them)
    - 500: internal compilation error
    - 503: target schema unavailable
    """
    logger.info(f"Compile requested - ds={request.data_source_id}, schema={request.schema_name}")
    model = request.query_model
    try:
        if request.auto_join:
            model = await service.attach_joins(model, request.data_source_id, request.schema_name)
        outcome = await service.validate_and_compile(model, request.data_source_id, request.schema_name)
    except SchemaIntrospectionError as e:
        raise _schema_unavailable(e)
    except CompilationError as e:
        logger.error(f"Compilation failed for a validated model: {e}")
        raise HTTPException(status_code=500, detail={"error": "internal_error", "message": str(e)})

    if isinstance(outcome, list):
        raise HTTPException(
            status_code=422,
            detail={
                "error": "validation_failed",
                "issues": [issue.to_dict() for issue in outcome],
            },
        )

    return CompileResponse(
        sql=outcome.sql,
        params=outcome.params,
        query_model=model if request.auto_join else None,
    )


@router.post("/validate", response_model=ValidateResponse)
async def validate_query_model(
    request: CompileRequest,
    service: JoinEngineService = Depends(service_dependency),
):
    """Validate a query model without compiling it"""
    try:
        issues = await service.validate(request.query_model, request.data_source_id, request.schema_name)
    except SchemaIntrospectionError as e:
        raise _schema_unavailable(e)

    return ValidateResponse(
        valid=not issues,
        issues=[ValidationIssueOut.model_validate(issue.to_dict()) for issue in issues],
    )
