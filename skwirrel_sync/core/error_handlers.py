"""
Global error handlers registered on the FastAPI application.

Every failure leaves the API in one shape:

    {
        "error": true,
        "error_code": "SYNC_RUN_FAILED",
        "message": "JSON-RPC call 'getProducts' timed out after 30s.",
        "details": { ... },
        "retryable": true,
        "request_id": "abc-123"
    }

``retryable`` is only present for PIM errors; retryable ones also carry a
``Retry-After`` header when the PIM sent one.
"""

import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from skwirrel_sync.core.exceptions import AppException, SourceAPIException, SyncRunException
from skwirrel_sync.core.logging import get_logger

logger = get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Attach all global exception handlers to the FastAPI app."""

    # ── 1. Application errors (PIM, auth, sync runs, ...) ─────────────

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Application error",
            extra={
                "error_code": exc.error_code,
                "status_code": exc.status_code,
                "error_message": exc.message,
                "path": request.url.path,
                "method": request.method,
            },
        )

        body = exc.to_dict()
        headers: dict[str, str] = {}
        source = _source_error(exc)
        if source is not None:
            body["retryable"] = source.retryable
            retry_after = source.details.get("retry_after")
            if source.retryable and retry_after:
                headers["Retry-After"] = str(retry_after)

        return _error_response(request, exc.status_code, body, headers)

    # ── 2. Request body / query validation ────────────────────────────

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        logger.warning(
            "Request validation failed",
            extra={"path": request.url.path, "validation_errors": errors},
        )
        return _error_response(request, 422, {
            "error": True,
            "error_code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": errors},
        })

    # ── 3. Routing errors (404 on unknown paths, 405, ...) ────────────

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP error",
            extra={"status_code": exc.status_code, "path": request.url.path},
        )
        return _error_response(request, exc.status_code, {
            "error": True,
            "error_code": "HTTP_ERROR",
            "message": str(exc.detail),
        })

    # ── 4. Anything else ──────────────────────────────────────────────

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.critical(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=exc,
        )
        return _error_response(request, 500, {
            "error": True,
            "error_code": "INTERNAL_ERROR",
            "message": "An unexpected internal error occurred.",
        })


# ─── Helpers ──────────────────────────────────────────────────────────


def _source_error(exc: AppException) -> SourceAPIException | None:
    """The PIM error behind ``exc``, unwrapping a failed sync run."""
    cause = exc.cause if isinstance(exc, SyncRunException) else exc
    return cause if isinstance(cause, SourceAPIException) else None


def _error_response(
    request: Request,
    status_code: int,
    body: dict[str, Any],
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body["request_id"] = getattr(request.state, "request_id", None) or uuid.uuid4().hex
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body),
        headers=headers or None,
    )
