from typing import Any, Literal

from pydantic import BaseModel, Field

from skwirrel_sync.schemas.sync_schema import EntityKind, SyncOptions


class ProductQueryRequest(BaseModel):
    """Request body for the raw product listing endpoint."""

    page: int = Field(default=1, ge=1, description="Start page (1-based)")
    limit: int = Field(
        default=100, ge=1, le=500, description="Page size (1-500)")
    return_all: bool = Field(
        default=False, description="Follow pagination to the last page")
    updated_since: str | None = Field(
        default=None,
        description="ISO 8601 timestamp; when set, getProductsByFilter is used",
    )
    operator: Literal[">=", ">", "<=", "<", "=="] = Field(
        default=">=", description="Comparison applied to updated_on")
    collection_ids: list[int] = Field(default_factory=list)


class GroupedProductQueryRequest(BaseModel):
    """Request body for the raw grouped product listing endpoint."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=100, ge=1, le=500)
    return_all: bool = Field(default=False)
    include_products: bool = Field(default=True)
    include_etim_features: bool = Field(default=True)
    collection_ids: list[int] = Field(default_factory=list)


class ProjectionPreviewRequest(BaseModel):
    """Project a posted source record without writing anything."""

    record: dict[str, Any] = Field(..., description="Raw PIM record")
    kind: EntityKind = Field(default=EntityKind.PRODUCT)
    options: SyncOptions = Field(default_factory=SyncOptions)


class SyncRunRequest(BaseModel):
    """Request body for triggering a sync run."""

    delta: bool = Field(
        default=False, description="Only fetch products updated since `updated_since`")
    updated_since: str | None = Field(
        default=None, description="ISO 8601 timestamp, required for a delta run")
    deadline_seconds: float | None = Field(
        default=None, gt=0,
        description="Stop consuming pages once the run has taken this long")
