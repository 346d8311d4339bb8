"""
Internal join suggestion endpoint

Called by the data model builder (manual UI or AI modeler backend) to get the
inferred relationships of a data source schema.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from joinengine.api.dependencies import service_dependency
from joinengine.api.schemas.suggestions import (
    JoinSuggestionOut,
    JoinSuggestionsResponse,
    SuggestionMetadata,
)
from joinengine.service import JoinEngineService
from joinengine.utils.errors import SchemaIntrospectionError


router = APIRouter(prefix="/internal/data-sources", tags=["internal"])


@router.get(
    "/{data_source_id}/schemas/{schema_name}/join-suggestions",
    response_model=JoinSuggestionsResponse,
)
async def get_join_suggestions(
    data_source_id: int,
    schema_name: str,
    force_refresh: bool = Query(False, description="Bypass the suggestion cache"),
    service: JoinEngineService = Depends(service_dependency),
):
    """
    Inferred equality joins for a data source schema, highest confidence first.

    Low-confidence suggestions are included and flagged (`low_confidence`).
    """
    logger.info(f"Join suggestions requested - ds={data_source_id}, schema={schema_name}, force_refresh={force_refresh}")
    try:
        entry, cache_hit = await service.get_suggestion_entry(data_source_id, schema_name, force_refresh)
    except SchemaIntrospectionError as e:
        logger.error(f"Schema introspection failed: {e}")
        raise HTTPException(status_code=503, detail={"error": "schema_unavailable", "message": str(e)})

    return JoinSuggestionsResponse(
        data_source_id=data_source_id,
        schema_name=schema_name,
        suggestions=[JoinSuggestionOut.model_validate(s.to_dict()) for s in entry.suggestions],
        metadata=SuggestionMetadata.model_validate(service.describe(entry, cache_hit)),
    )
