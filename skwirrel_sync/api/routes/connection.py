"""
Connection endpoint — verify the configured PIM endpoint and credentials.

GET /connection/
"""

from fastapi import APIRouter, Depends

from skwirrel_sync.api.dependencies import get_rpc_client
from skwirrel_sync.schemas.response_schema import ConnectionResponse
from skwirrel_sync.services.rpc_client import JsonRpcClient

router = APIRouter(prefix="/connection", tags=["Connection"])


@router.get(
    "/",
    response_model=ConnectionResponse,
    summary="Test the PIM connection",
    description=(
        "Issues a minimal getProducts call (one record, no includes) with "
        "the configured endpoint, auth scheme and token."
    ),
)
async def test_connection(
    client: JsonRpcClient = Depends(get_rpc_client),
) -> ConnectionResponse:
    await client.test_connection()
    return ConnectionResponse(
        endpoint=client.endpoint,
        auth_type=client.auth_type,
    )
