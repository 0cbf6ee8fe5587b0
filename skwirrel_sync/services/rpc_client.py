"""
JSON-RPC 2.0 client for the Skwirrel PIM API.

Handles:
  1. Building the request envelope with a process-wide request id.
  2. Attaching exactly one authentication header (bearer or API token).
  3. Unwrapping the response envelope into its ``result`` member, or
     raising the matching RPC exception.

No retries happen here: transport-level failures are raised as
``RpcTransportException`` (``retryable=True``) for the caller to act on.
"""

import itertools
import json
from typing import Any

import httpx
from pydantic import ValidationError

from skwirrel_sync.config import Settings, get_settings
from skwirrel_sync.core.exceptions import (
    AuthenticationException,
    RpcConnectionException,
    RpcDecodeException,
    RpcRemoteException,
    RpcTimeoutException,
    RpcTransportException,
)
from skwirrel_sync.core.logging import get_logger
from skwirrel_sync.schemas import JsonRpcRequest, JsonRpcResponse

logger = get_logger(__name__)

_BEARER_HEADER = "Authorization"
_TOKEN_HEADER = "X-Skwirrel-Api-Token"
_VERSION_HEADER = "X-Skwirrel-Api-Version"

# Gateway / throttling statuses: the request never reached the RPC layer
_RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})

# JSON-RPC "internal error", used when an error object carries no code
_INTERNAL_ERROR_CODE = -32603

_request_ids = itertools.count(1)


def next_request_id() -> int:
    """Monotonically increasing per process; only used to correlate logs."""
    return next(_request_ids)


class JsonRpcClient:
    """httpx-backed JSON-RPC client for one configured PIM endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: Settings | None = None,
    ) -> None:
        self._http = http_client
        self._settings = settings or get_settings()

    @property
    def endpoint(self) -> str:
        return self._settings.pim_endpoint

    @property
    def auth_type(self) -> str:
        return self._settings.pim_auth_type

    def _headers(self) -> dict[str, str]:
        """Standard headers plus the single active auth header."""
        token = self._settings.pim_auth_token
        if not token:
            raise AuthenticationException(
                message="No API token configured for the PIM endpoint.",
                details={"auth_type": self._settings.pim_auth_type},
            )

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            _VERSION_HEADER: self._settings.pim_api_version,
        }
        if self._settings.pim_auth_type == "bearer":
            headers[_BEARER_HEADER] = f"Bearer {token}"
        else:
            headers[_TOKEN_HEADER] = token
        return headers

    # ── Call ──────────────────────────────────────────────────────────

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """
        Issue one JSON-RPC exchange and return the envelope's ``result``.

        Raises:
            RpcTimeoutException:     The request exceeded the configured timeout.
            RpcConnectionException:  The endpoint could not be reached.
            RpcTransportException:   Any other network failure or a gateway status.
            RpcDecodeException:      The body is not a JSON-RPC object.
            RpcRemoteException:      The PIM answered with an error.
        """
        envelope = JsonRpcRequest(
            method=method, params=params or {}, id=next_request_id())
        headers = self._headers()
        timeout = self._settings.pim_timeout

        logger.debug(
            "JSON-RPC request",
            extra={"method": method, "request_id_rpc": envelope.id},
        )

        try:
            response = await self._http.post(
                self.endpoint,
                json=envelope.model_dump(),
                headers=headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise RpcTimeoutException(
                message=f"JSON-RPC call '{method}' timed out after {timeout}s.",
                details={"endpoint": self.endpoint, "method": method, "error": str(exc)},
            ) from exc
        except httpx.ConnectError as exc:
            raise RpcConnectionException(
                details={"endpoint": self.endpoint, "method": method, "error": str(exc)},
            ) from exc
        except httpx.HTTPError as exc:
            raise RpcTransportException(
                message=f"JSON-RPC call '{method}' failed: {exc}",
                details={"endpoint": self.endpoint, "method": method, "error": str(exc)},
            ) from exc

        if response.status_code in _RETRYABLE_STATUSES:
            logger.warning(
                "Retryable HTTP status from PIM",
                extra={"method": method, "status_code": response.status_code},
            )
            raise RpcTransportException(
                message=f"HTTP {response.status_code} {response.reason_phrase}".strip(),
                details={
                    "endpoint": self.endpoint,
                    "method": method,
                    "status_code": response.status_code,
                    "retry_after": response.headers.get("retry-after"),
                },
            )

        rpc = self._decode(response, method)

        if response.status_code >= 400 or rpc.error is not None:
            error = rpc.error
            if error:
                message = error.message or "Unknown error"
            else:
                message = response.reason_phrase or "HTTP error"
            if error and error.code is not None:
                rpc_code = error.code
            elif response.status_code >= 400:
                rpc_code = response.status_code
            else:
                rpc_code = _INTERNAL_ERROR_CODE
            logger.error(
                "JSON-RPC error",
                extra={
                    "method": method,
                    "status_code": response.status_code,
                    "rpc_code": rpc_code,
                    "rpc_message": message,
                },
            )
            raise RpcRemoteException(
                message=message,
                rpc_code=rpc_code,
                data=error.data if error else None,
                details={"method": method, "status_code": response.status_code},
            )

        return rpc.result

    async def test_connection(self) -> Any:
        """Minimal getProducts call: one record, every include switched off."""
        result = await self.call(
            "getProducts",
            {
                "page": 1,
                "limit": 1,
                "include_product_status": False,
                "include_product_translations": False,
                "include_attachments": False,
                "include_trade_items": False,
                "include_categories": False,
            },
        )
        logger.info("PIM connection test successful",
                    extra={"endpoint": self.endpoint})
        return result

    # ── Private helpers ───────────────────────────────────────────────

    @staticmethod
    def _decode(response: httpx.Response, method: str) -> JsonRpcResponse:
        """
        Parse the body into a JSON-RPC response envelope.

        A body relayed as an escaped JSON string is decoded a second time.
        """
        try:
            decoded: Any = json.loads(response.text)
            if isinstance(decoded, str):
                decoded = json.loads(decoded)
        except ValueError as exc:
            logger.error(
                "Invalid JSON response",
                extra={"method": method, "body": response.text[:500]},
            )
            raise RpcDecodeException(
                details={"method": method, "error": str(exc),
                         "raw_body": response.text[:500]},
            ) from exc

        if not isinstance(decoded, dict):
            raise RpcDecodeException(
                message="JSON-RPC response is not an object.",
                details={"method": method, "raw_body": response.text[:500]},
            )

        try:
            return JsonRpcResponse.model_validate(decoded)
        except ValidationError as exc:
            raise RpcDecodeException(
                message="Malformed JSON-RPC response envelope.",
                details={"method": method, "error": str(exc),
                         "raw_body": response.text[:500]},
            ) from exc
