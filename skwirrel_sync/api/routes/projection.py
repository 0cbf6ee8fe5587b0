"""
Projection endpoints — inspect what a sync would write, without writing.

POST /projection/preview
GET  /projection/field-declarations
"""

from fastapi import APIRouter, Depends

from skwirrel_sync.api.dependencies import get_app_settings, get_hooks
from skwirrel_sync.config import Settings
from skwirrel_sync.core.hooks import SyncHooks
from skwirrel_sync.mappers.field_mapper import FieldMapper, build_field_declarations
from skwirrel_sync.mappers.projection import ProjectionPipeline
from skwirrel_sync.schemas import ProjectionResult, SyncOptions
from skwirrel_sync.schemas.request_schema import ProjectionPreviewRequest
from skwirrel_sync.schemas.response_schema import FieldDeclarationListResponse

router = APIRouter(prefix="/projection", tags=["Projection"])


@router.post(
    "/preview",
    response_model=ProjectionResult,
    summary="Project a source record",
    description=(
        "Runs the projection pipeline on the posted record with the posted "
        "options and returns the ordered field writes."
    ),
)
async def preview_projection(
    req: ProjectionPreviewRequest,
    settings: Settings = Depends(get_app_settings),
    hooks: SyncHooks = Depends(get_hooks),
) -> ProjectionResult:
    pipeline = ProjectionPipeline.for_run(req.options, settings, hooks=hooks)
    return pipeline.project(req.record, req.kind)


@router.get(
    "/field-declarations",
    response_model=FieldDeclarationListResponse,
    summary="Destination field declarations for the effective field map",
)
async def field_declarations(
    settings: Settings = Depends(get_app_settings),
    hooks: SyncHooks = Depends(get_hooks),
) -> FieldDeclarationListResponse:
    mapper = FieldMapper(namespace=settings.field_namespace, hooks=hooks)
    field_map = mapper.effective_map(SyncOptions.from_settings(settings))
    declarations = build_field_declarations(field_map, settings.field_namespace)
    return FieldDeclarationListResponse(
        total_count=len(declarations),
        field_map=field_map,
        declarations=declarations,
    )
