from typing import Any

from pydantic import BaseModel, Field

from skwirrel_sync.schemas.sync_schema import FieldDeclaration


class ConnectionResponse(BaseModel):
    status: str = "ok"
    endpoint: str
    auth_type: str


class ProductListResponse(BaseModel):
    """Raw PIM records as returned by a paginated list method."""

    status: str = "ok"
    method: str
    total_count: int = 0
    pages_fetched: int = 0
    records: list[dict[str, Any]] = Field(default_factory=list)


class FieldDeclarationListResponse(BaseModel):
    total_count: int = 0
    field_map: dict[str, str] = Field(default_factory=dict)
    declarations: list[FieldDeclaration] = Field(default_factory=list)


class EntityFieldsResponse(BaseModel):
    entity_id: str
    fields: dict[str, Any] = Field(default_factory=dict)
