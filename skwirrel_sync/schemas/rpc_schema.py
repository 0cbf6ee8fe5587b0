"""
Pydantic schemas for the Skwirrel JSON-RPC 2.0 wire format.

Request:  {"jsonrpc": "2.0", "method": ..., "params": {...}, "id": <int>}
Response: {"result": ...} or {"error": {"code", "message", "data"?}}

Paginated list methods answer with ``{<items>: [...], "page": {...}}``.
"""

from typing import Any

from pydantic import BaseModel, Field


class JsonRpcRequest(BaseModel):
    """Outgoing request envelope."""

    jsonrpc: str = Field(default="2.0", description="Protocol version")
    method: str = Field(..., description="Remote method, e.g. getProducts")
    params: dict[str, Any] = Field(default_factory=dict)
    id: int = Field(..., description="Per-process monotonically increasing id")


class JsonRpcError(BaseModel):
    """The ``error`` member of a failed response."""

    code: int | str | None = Field(default=None)
    message: str | None = Field(default=None)
    data: Any = Field(default=None, description="Opaque diagnostics, passed through")

    model_config = {"extra": "allow"}


class JsonRpcResponse(BaseModel):
    """Incoming response envelope; ``id`` / ``jsonrpc`` echoes are not interpreted."""

    result: Any = Field(default=None)
    error: JsonRpcError | None = Field(default=None)

    model_config = {"extra": "allow"}


# ── Pagination ─────────────────────────────────────────────────────────


class PageInfo(BaseModel):
    """The ``page`` member of a list-method result."""

    current_page: int | None = Field(default=None)
    number_of_pages: int | None = Field(
        default=None, description="Absent when the server does not report it")

    model_config = {"extra": "allow"}


class Page(BaseModel):
    """
    One fetched page: its records plus pagination metadata.

    Built fresh per JSON-RPC call and discarded once its records have
    been forwarded.
    """

    records: list[dict[str, Any]] = Field(default_factory=list)
    item_count: int = Field(default=0, description="Items the server sent, before dropping non-objects")
    number: int = Field(..., description="Current page number (1-based)")
    number_of_pages: int | None = Field(default=None, description="None when not reported")
    page_size: int = Field(..., ge=1, description="Requested page size")

    @property
    def is_short(self) -> bool:
        return self.item_count < self.page_size
