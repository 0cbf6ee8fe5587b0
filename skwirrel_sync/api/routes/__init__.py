"""
Route aggregation for API v1.
"""

from fastapi import APIRouter

from skwirrel_sync.api.routes.connection import router as connection_router
from skwirrel_sync.api.routes.products import router as products_router
from skwirrel_sync.api.routes.projection import router as projection_router
from skwirrel_sync.api.routes.sync import router as sync_router

router = APIRouter()
router.include_router(connection_router)
router.include_router(products_router)
router.include_router(projection_router)
router.include_router(sync_router)
