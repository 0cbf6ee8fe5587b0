"""
Shared FastAPI dependencies — injected into route handlers.
"""

from fastapi import Depends, Request

from skwirrel_sync.config import Settings
from skwirrel_sync.core.hooks import SyncHooks
from skwirrel_sync.services.field_writer import KeyValueFieldStore
from skwirrel_sync.services.paginator import Paginator
from skwirrel_sync.services.rpc_client import JsonRpcClient
from skwirrel_sync.services.sync_service import SyncService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_hooks(request: Request) -> SyncHooks:
    return request.app.state.hooks


def get_field_store(request: Request) -> KeyValueFieldStore:
    return request.app.state.field_store


def get_rpc_client(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> JsonRpcClient:
    """Provide a JsonRpcClient backed by the shared httpx client."""
    return JsonRpcClient(http_client=request.app.state.http_client, settings=settings)


def get_paginator(
    client: JsonRpcClient = Depends(get_rpc_client),
    hooks: SyncHooks = Depends(get_hooks),
) -> Paginator:
    """A fresh paginator per request; its page counter is request-scoped."""
    return Paginator(client, hooks=hooks)


def get_sync_service(
    client: JsonRpcClient = Depends(get_rpc_client),
    settings: Settings = Depends(get_app_settings),
    store: KeyValueFieldStore = Depends(get_field_store),
    hooks: SyncHooks = Depends(get_hooks),
) -> SyncService:
    """Provide a SyncService with its dependencies wired up."""
    return SyncService(client=client, settings=settings, writer=store, hooks=hooks)
