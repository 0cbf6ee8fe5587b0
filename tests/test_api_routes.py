"""
Tests for the HTTP API.
"""

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from skwirrel_sync import main
from skwirrel_sync.main import create_app


@pytest.mark.asyncio
async def test_health_check(client: httpx.AsyncClient) -> None:
    """Health endpoint should return 200 with app info."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: httpx.AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"


# ── Connection ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_connection_ok(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue({"products": []})

    response = await client.get("/api/v1/connection/")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok", "endpoint": "http://fake-pim/jsonrpc", "auth_type": "bearer"}


@pytest_asyncio.fixture
async def tokenless_client(fake_pim, settings_factory):
    application: FastAPI = create_app(settings_factory(pim_auth_token=""))
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_pim)) as mock_http:
        application.state.http_client = mock_http
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=application),
            base_url="http://testserver",
        ) as ac:
            yield ac


@pytest.mark.asyncio
async def test_connection_without_token(tokenless_client: httpx.AsyncClient, fake_pim) -> None:
    response = await tokenless_client.get("/api/v1/connection/")

    assert response.status_code == 401
    data = response.json()
    assert data["error"] is True
    assert data["error_code"] == "AUTH_ERROR"
    assert "request_id" in data
    assert fake_pim.requests == []


@pytest.mark.asyncio
async def test_connection_timeout(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue(httpx.ReadTimeout("timed out"))

    response = await client.get("/api/v1/connection/")

    assert response.status_code == 504
    assert response.json()["error_code"] == "RPC_TIMEOUT"


# ── Products ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_products(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue_page([{"product_id": 1}, {"product_id": 2}], current_page=1, number_of_pages=2)
    fake_pim.queue_page([{"product_id": 3}], current_page=2, number_of_pages=2)

    response = await client.post(
        "/api/v1/products/", json={"limit": 2, "return_all": True, "collection_ids": [4]})

    assert response.status_code == 200
    data = response.json()
    assert data["method"] == "getProducts"
    assert data["total_count"] == 3
    assert data["pages_fetched"] == 2
    assert fake_pim.calls[0]["params"]["collection_ids"] == [4]


@pytest.mark.asyncio
async def test_list_products_updated_since(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue_page([{"product_id": 1}])

    response = await client.post(
        "/api/v1/products/",
        json={"updated_since": "2024-01-01T00:00:00Z", "operator": ">"},
    )

    assert response.status_code == 200
    assert response.json()["method"] == "getProductsByFilter"
    assert fake_pim.calls[0]["params"]["filter"] == {
        "updated_on": {"datetime": "2024-01-01T00:00:00Z", "operator": ">"}}


@pytest.mark.asyncio
async def test_list_products_invalid_limit(client: httpx.AsyncClient) -> None:
    """Should return 422 for limit < 1."""
    response = await client.post("/api/v1/products/", json={"limit": 0})

    assert response.status_code == 422
    data = response.json()
    assert data["error"] is True
    assert data["error_code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_list_grouped_products(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue_page([{"grouped_product_id": 7}], key="groups")

    response = await client.post(
        "/api/v1/products/grouped", json={"include_etim_features": False})

    assert response.status_code == 200
    assert response.json()["records"] == [{"grouped_product_id": 7}]
    params = fake_pim.calls[0]["params"]
    assert params["include_products"] is True
    assert params["include_etim_features"] is False


@pytest.mark.asyncio
async def test_remote_error_is_bad_gateway(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue(httpx.Response(200, json={"error": {"code": 42, "message": "Nope"}}))

    response = await client.post("/api/v1/products/", json={})

    assert response.status_code == 502
    data = response.json()
    assert data["error_code"] == "RPC_REMOTE_ERROR"
    assert data["message"] == "Nope"
    assert data["details"]["rpc_code"] == 42


# ── Projection ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_projection_preview(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/api/v1/projection/preview",
        json={
            "record": {
                "product_gtin": "123",
                "brand_name": "",
                "_trade_items": [
                    {"ean": "456", "_trade_item_prices": [{"net_price": 10, "currency": "EUR"}]},
                ],
            },
            "options": {"syncTradeItems": True},
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["entity_kind"] == "product"
    assert [w["field_name"] for w in data["writes"]] == [
        "skwirrel_gtin", "skwirrel_prices", "skwirrel_ean"]
    assert data["writes"][1]["value"] == [
        {"net_price": 10, "gross_price": None, "currency": "EUR", "price_on_request": False}]


@pytest.mark.asyncio
async def test_projection_preview_grouped(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/api/v1/projection/preview",
        json={"record": {"id": 3, "name": "Bouten"}, "kind": "grouped"},
    )

    assert response.status_code == 200
    assert [w["field_name"] for w in response.json()["writes"]] == [
        "skwirrel_grouped_product_id", "skwirrel_grouped_product_name"]


@pytest.mark.asyncio
async def test_field_declarations(client: httpx.AsyncClient) -> None:
    response = await client.get("/api/v1/projection/field-declarations")

    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == len(data["field_map"]) == 7
    assert data["declarations"][0]["name"] == "skwirrel_gtin"
    assert data["declarations"][0]["key"].startswith("field_skwirrel_")


# ── Sync ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_sync_then_read_entity(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue_page([{"product_id": 11, "product_gtin": "123"}])

    response = await client.post("/api/v1/sync/", json={})

    assert response.status_code == 200
    summary = response.json()
    assert summary["status"] == "ok"
    assert summary["projected"] == 1

    entity = await client.get("/api/v1/sync/entities/11")
    assert entity.status_code == 200
    assert entity.json() == {
        "entity_id": "11",
        "fields": {"skwirrel_gtin": "123", "skwirrel_product_id": 11},
    }


@pytest.mark.asyncio
async def test_unknown_entity_is_not_found(client: httpx.AsyncClient) -> None:
    response = await client.get("/api/v1/sync/entities/404")

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_delta_sync_requires_timestamp(client: httpx.AsyncClient, fake_pim) -> None:
    response = await client.post("/api/v1/sync/", json={"delta": True})

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"
    assert fake_pim.requests == []


@pytest.mark.asyncio
async def test_sync_failure_returns_partial_summary(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue_page([{"product_id": 1}, {"product_id": 2}], current_page=1, number_of_pages=2)
    fake_pim.queue(httpx.ConnectError("connection refused"))

    response = await client.post("/api/v1/sync/", json={})

    assert response.status_code == 502
    data = response.json()
    assert data["error_code"] == "SYNC_RUN_FAILED"
    assert data["details"]["cause_error_code"] == "RPC_CONNECTION_ERROR"
    assert data["details"]["summary"]["projected"] == 2
    assert data["details"]["summary"]["status"] == "failed"
    assert data["retryable"] is True


@pytest.mark.asyncio
async def test_auto_field_declarations(fake_pim, settings_factory) -> None:
    application = create_app(settings_factory(auto_field_declarations=True))
    fake_pim.queue_page([])

    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_pim)) as mock_http:
        application.state.http_client = mock_http
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=application),
            base_url="http://testserver",
        ) as ac:
            response = await ac.post("/api/v1/sync/", json={})

    assert response.status_code == 200
    names = {d.name for d in application.state.field_store.declarations}
    assert "skwirrel_gtin" in names


@pytest.mark.asyncio
async def test_retryable_pim_error_sets_retry_after(client: httpx.AsyncClient, fake_pim) -> None:
    fake_pim.queue(httpx.Response(503, text="busy", headers={"Retry-After": "3"}))

    response = await client.get("/api/v1/connection/")

    assert response.status_code == 502
    assert response.headers["Retry-After"] == "3"
    data = response.json()
    assert data["error_code"] == "RPC_TRANSPORT_ERROR"
    assert data["retryable"] is True


@pytest.mark.asyncio
async def test_sync_without_token(tokenless_client: httpx.AsyncClient, fake_pim) -> None:
    response = await tokenless_client.post("/api/v1/sync/", json={})

    assert response.status_code == 401
    data = response.json()
    assert data["error_code"] == "SYNC_RUN_FAILED"
    assert data["details"]["cause_error_code"] == "AUTH_ERROR"
    assert data["details"]["summary"]["status"] == "failed"
    assert "retryable" not in data
    assert fake_pim.requests == []


# ── Server entry point ────────────────────────────────────────────────


def test_run_serves_on_configured_host_and_port(monkeypatch, settings_factory) -> None:
    calls = []
    monkeypatch.setattr(
        main, "get_settings", lambda: settings_factory(host="127.0.0.1", port=9100))
    monkeypatch.setattr(main.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))

    main.run()

    assert calls == [("skwirrel_sync.main:app", {
        "host": "127.0.0.1", "port": 9100, "reload": False, "log_config": None})]
