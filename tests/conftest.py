"""
Pytest configuration & shared fixtures.
"""

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from skwirrel_sync.config import Settings
from skwirrel_sync.main import create_app
from skwirrel_sync.services.rpc_client import JsonRpcClient

PIM_ENDPOINT = "http://fake-pim/jsonrpc"


class FakePim:
    """
    Scripted JSON-RPC endpoint for ``httpx.MockTransport``.

    Answers calls in queue order. A queued ``httpx.Response`` is returned
    as-is, a queued exception is raised, anything else becomes the
    ``result`` of a success envelope.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: list[Any] = []

    def queue(self, *responses: Any) -> None:
        self._responses.extend(responses)

    def queue_page(
        self,
        records: list[dict[str, Any]],
        current_page: int = 1,
        number_of_pages: int = 1,
        key: str = "products",
    ) -> None:
        self.queue({
            key: records,
            "page": {"current_page": current_page, "number_of_pages": number_of_pages},
        })

    @property
    def calls(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    @property
    def methods(self) -> list[str]:
        return [c["method"] for c in self.calls]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            return httpx.Response(500, json={"error": {"message": "No scripted response"}})

        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        body = json.loads(request.content)
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "result": response, "id": body["id"]})


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "pim_endpoint": PIM_ENDPOINT,
        "pim_auth_type": "bearer",
        "pim_auth_token": "test-token",
        "pim_batch_size": 2,
        "log_format": "console",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings_factory():
    """Build Settings with test defaults; keyword arguments override them."""
    return make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_pim() -> FakePim:
    return FakePim()


@pytest_asyncio.fixture
async def rpc_client(fake_pim: FakePim, settings: Settings) -> AsyncIterator[JsonRpcClient]:
    """JsonRpcClient whose HTTP traffic is answered by ``fake_pim``."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_pim)) as hc:
        yield JsonRpcClient(http_client=hc, settings=settings)


@pytest_asyncio.fixture
async def app(fake_pim: FakePim, settings: Settings) -> AsyncIterator[FastAPI]:
    """Provide a fresh FastAPI app whose PIM traffic goes to ``fake_pim``."""
    application = create_app(settings)

    # The ASGI transport does not run the lifespan, so set the client here
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(fake_pim),
        timeout=httpx.Timeout(5),
    ) as mock_http:
        application.state.http_client = mock_http
        yield application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Provide an async test client."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
