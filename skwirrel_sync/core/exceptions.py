"""
Custom exception hierarchy for the sync service.

All application-specific exceptions inherit from AppException,
enabling consistent error handling and structured error responses.

Hierarchy:
    AppException
    ├── SourceAPIException           — Errors talking to the PIM JSON-RPC endpoint
    │   ├── RpcTransportException    — Network failure / gateway status (retryable)
    │   │   ├── RpcTimeoutException
    │   │   └── RpcConnectionException
    │   ├── RpcDecodeException       — Response body is not a JSON-RPC object
    │   └── RpcRemoteException       — Error envelope returned by the PIM
    ├── AuthenticationException      — No token for the configured auth scheme
    ├── TransformationException      — Source record violates the projection contract
    │   └── MappingWarning           — Custom field-map entry dropped (never raised)
    ├── ValidationException          — Request data fails validation
    ├── NotFoundException            — Requested resource does not exist
    └── SyncRunException             — A sync run aborted on a page fetch
"""

from typing import Any


class AppException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:     Human-readable error description.
        status_code: HTTP status code to return to the client.
        error_code:  Machine-readable error identifier (e.g. "RPC_TIMEOUT").
        details:     Optional dict with extra context for debugging.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred.",
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the exception into a JSON-friendly dict."""
        payload: dict[str, Any] = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


# ─── Source API Errors ────────────────────────────────────────────────


class SourceAPIException(AppException):
    """Raised when the PIM endpoint returns an error or is unreachable."""

    retryable = False

    def __init__(
        self,
        message: str = "Failed to fetch data from the PIM API.",
        status_code: int = 502,
        error_code: str = "SOURCE_API_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


class RpcTransportException(SourceAPIException):
    """Network-level failure or gateway status; safe for the caller to retry."""

    retryable = True

    def __init__(
        self,
        message: str = "JSON-RPC request failed at the transport level.",
        status_code: int = 502,
        error_code: str = "RPC_TRANSPORT_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


class RpcTimeoutException(RpcTransportException):
    """Raised when the JSON-RPC request times out."""

    def __init__(
        self,
        message: str = "JSON-RPC request timed out.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=504,
            error_code="RPC_TIMEOUT",
            details=details,
        )


class RpcConnectionException(RpcTransportException):
    """Raised when unable to establish a connection to the PIM endpoint."""

    def __init__(
        self,
        message: str = "Unable to connect to the PIM API.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=502,
            error_code="RPC_CONNECTION_ERROR",
            details=details,
        )


class RpcDecodeException(SourceAPIException):
    """Raised when the response body is not a well-formed JSON-RPC object."""

    def __init__(
        self,
        message: str = "Invalid JSON response from the PIM API.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=502,
            error_code="RPC_DECODE_ERROR",
            details=details,
        )


class RpcRemoteException(SourceAPIException):
    """
    Raised when the PIM answers with an error envelope.

    ``data`` is the remote's opaque diagnostic payload, passed through as-is.
    """

    def __init__(
        self,
        message: str = "PIM API returned an error.",
        rpc_code: int | str | None = None,
        data: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.rpc_code = rpc_code
        self.data = data
        extra: dict[str, Any] = {"rpc_code": rpc_code}
        if data is not None:
            extra["data"] = data
        super().__init__(
            message=message,
            status_code=502,
            error_code="RPC_REMOTE_ERROR",
            details={**(details or {}), **extra},
        )


# ─── Authentication ──────────────────────────────────────────────────


class AuthenticationException(AppException):
    """Raised when no credentials are configured for the active auth scheme."""

    def __init__(
        self,
        message: str = "Authentication failed.",
        status_code: int = 401,
        error_code: str = "AUTH_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


# ─── Transformation Errors ───────────────────────────────────────────


class TransformationException(AppException):
    """Raised when a source record cannot be projected at all."""

    def __init__(
        self,
        message: str = "Data transformation failed.",
        status_code: int = 422,
        error_code: str = "TRANSFORMATION_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


class MappingWarning(TransformationException):
    """
    A custom field-map entry was dropped for being malformed.

    Non-fatal: instances are collected and logged by the field mapper,
    the run continues with the remaining entries.
    """

    def __init__(
        self,
        entry: Any,
        reason: str = "Source path and destination name are both required.",
    ) -> None:
        super().__init__(
            message=f"Custom field mapping dropped: {reason}",
            status_code=422,
            error_code="MAPPING_ENTRY_DROPPED",
            details={"entry": entry},
        )


# ─── Validation Errors ───────────────────────────────────────────────


class ValidationException(AppException):
    """Raised when request data fails validation."""

    def __init__(
        self,
        message: str = "Validation error.",
        status_code: int = 422,
        error_code: str = "VALIDATION_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


# ─── Not Found ────────────────────────────────────────────────────────


class NotFoundException(AppException):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        message: str = "Resource not found.",
        status_code: int = 404,
        error_code: str = "NOT_FOUND",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, error_code, details)


# ─── Sync Runs ───────────────────────────────────────────────────────


class SyncRunException(AppException):
    """
    A sync run stopped because a page fetch failed: the PIM errored or
    no credentials were configured for it.

    ``summary`` is the partial run summary, so callers can tell how many
    records were projected before the failure.
    """

    def __init__(
        self,
        cause: AppException,
        summary: Any = None,
    ) -> None:
        self.cause = cause
        self.summary = summary
        details: dict[str, Any] = {
            "cause_error_code": cause.error_code,
            "cause_details": cause.details,
        }
        if summary is not None:
            details["summary"] = summary.model_dump(mode="json")
        super().__init__(
            message=cause.message,
            status_code=cause.status_code,
            error_code="SYNC_RUN_FAILED",
            details=details,
        )
