"""
Pydantic schemas: JSON-RPC wire format, sync run models and API bodies.
"""

from skwirrel_sync.schemas.rpc_schema import (
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    Page,
    PageInfo,
)
from skwirrel_sync.schemas.sync_schema import (
    EntityKind,
    FieldDeclaration,
    FieldMapEntry,
    FieldWrite,
    ProjectionResult,
    SyncOptions,
    SyncSummary,
)

__all__ = [
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "Page",
    "PageInfo",
    "EntityKind",
    "FieldDeclaration",
    "FieldMapEntry",
    "FieldWrite",
    "ProjectionResult",
    "SyncOptions",
    "SyncSummary",
]
