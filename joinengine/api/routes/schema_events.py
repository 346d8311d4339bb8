"""
Internal schema event endpoint

Ingestion calls this after creating, dropping or altering tables of a data
source so that the next suggestion request recomputes.
"""

from fastapi import APIRouter, Depends
from loguru import logger

from joinengine.api.dependencies import service_dependency
from joinengine.api.schemas.suggestions import SchemaEvent, SchemaEventResponse
from joinengine.service import JoinEngineService


router = APIRouter(prefix="/internal/data-sources", tags=["internal"])


@router.post(
    "/{data_source_id}/schemas/{schema_name}/schema-events",
    response_model=SchemaEventResponse,
)
async def post_schema_event(
    data_source_id: int,
    schema_name: str,
    event: SchemaEvent,
    service: JoinEngineService = Depends(service_dependency),
):
    logger.info(f"Schema event '{event.event}' for ds={data_source_id}, schema={schema_name}, tables={event.tables}")
    # A deleted data source loses every schema, not just this one
    scope = None if event.event == "data_source_deleted" else schema_name
    invalidated = service.invalidate(data_source_id, scope)
    return SchemaEventResponse(
        data_source_id=data_source_id,
        schema_name=schema_name,
        event=event.event,
        invalidated=invalidated,
    )
