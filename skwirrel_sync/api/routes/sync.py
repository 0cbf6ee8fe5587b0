"""
Sync endpoints — run a sync and inspect what it wrote.

POST /sync/
GET  /sync/entities/{entity_id}
"""

from fastapi import APIRouter, Depends

from skwirrel_sync.api.dependencies import get_field_store, get_sync_service
from skwirrel_sync.core.exceptions import NotFoundException, ValidationException
from skwirrel_sync.schemas import SyncSummary
from skwirrel_sync.schemas.request_schema import SyncRunRequest
from skwirrel_sync.schemas.response_schema import EntityFieldsResponse
from skwirrel_sync.services.field_writer import KeyValueFieldStore
from skwirrel_sync.services.sync_service import SyncService

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post(
    "/",
    response_model=SyncSummary,
    summary="Run a full or delta sync",
    description=(
        "Fetches products (and grouped products when enabled) from the PIM, "
        "projects each record and writes the fields to the configured store. "
        "A failed page fetch returns SYNC_RUN_FAILED with the partial summary."
    ),
)
async def run_sync(
    req: SyncRunRequest,
    service: SyncService = Depends(get_sync_service),
) -> SyncSummary:
    if req.delta and not req.updated_since:
        raise ValidationException(
            message="A delta sync requires updated_since.",
            details={"delta": True},
        )
    return await service.run(
        delta=req.delta,
        updated_since=req.updated_since,
        deadline_seconds=req.deadline_seconds,
    )


@router.get(
    "/entities/{entity_id}",
    response_model=EntityFieldsResponse,
    summary="Fields written for one entity",
)
async def entity_fields(
    entity_id: str,
    store: KeyValueFieldStore = Depends(get_field_store),
) -> EntityFieldsResponse:
    fields = store.fields_for(entity_id)
    if fields is None:
        raise NotFoundException(
            message=f"No fields written for entity '{entity_id}'.",
            details={"entity_id": entity_id},
        )
    return EntityFieldsResponse(entity_id=entity_id, fields=fields)
