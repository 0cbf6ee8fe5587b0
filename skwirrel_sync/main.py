"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skwirrel_sync.config import Settings, get_settings
from skwirrel_sync.core.logging import setup_logging, get_logger
from skwirrel_sync.core.error_handlers import register_error_handlers
from skwirrel_sync.core.hooks import SyncHooks
from skwirrel_sync.core.middleware import RequestContextMiddleware
from skwirrel_sync.mappers.field_mapper import declaration_filter
from skwirrel_sync.services.field_writer import KeyValueFieldStore
from skwirrel_sync.api.routes import router as api_router


# ─── Lifespan: startup / shutdown ─────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources."""
    logger = get_logger(__name__)
    settings: Settings = app.state.settings

    # Startup
    setup_logging(level=settings.log_level, log_format=settings.log_format)
    app.state.http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.pim_timeout))
    logger.info(
        "Application starting",
        extra={
            "app": settings.app_name,
            "version": settings.app_version,
            "env": settings.app_env,
            "endpoint": settings.pim_endpoint,
        },
    )

    yield

    # Shutdown
    await app.state.http_client.aclose()
    logger.info("Application shut down gracefully.")


# ─── App factory ──────────────────────────────────────────────────────

def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = settings or get_settings()

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Shared per-application state: one hook registry and one key-value store
    application.state.settings = settings
    application.state.hooks = SyncHooks()
    application.state.field_store = KeyValueFieldStore()

    if settings.auto_field_declarations:
        application.state.hooks.add_field_map_filter(
            declaration_filter(application.state.field_store.declare, settings.field_namespace))

    # Middleware, outermost first
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestContextMiddleware)

    # Error handlers
    register_error_handlers(application)

    # Routes
    application.include_router(api_router, prefix="/api/v1")

    # Health check
    @application.get("/health", tags=["Health"])
    async def health_check() -> dict:
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
        }

    return application


app = create_app()


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    settings = get_settings()
    # Logging is configured in the lifespan, not by uvicorn
    uvicorn.run(
        "skwirrel_sync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.app_debug,
        log_config=None,
    )


if __name__ == "__main__":
    run()
