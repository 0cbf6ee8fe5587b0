"""
Tests for SyncService (fetch → project → write).
"""

import httpx
import pytest

from skwirrel_sync.core.exceptions import SyncRunException
from skwirrel_sync.core.hooks import SyncEvent, SyncHooks
from skwirrel_sync.core.logging import sync_run_id_var
from skwirrel_sync.services.field_writer import KeyValueFieldStore
from skwirrel_sync.services.rpc_client import JsonRpcClient
from skwirrel_sync.services.sync_service import (
    SyncService,
    entity_id_for,
    kind_for_product,
    member_keys,
)
from skwirrel_sync.schemas import EntityKind, SyncOptions


def _product(product_id: int, **extra) -> dict:
    return {"product_id": product_id, "product_gtin": f"87{product_id:011d}", **extra}


@pytest.fixture
def store() -> KeyValueFieldStore:
    return KeyValueFieldStore()


@pytest.mark.asyncio
async def test_full_sync_writes_projected_fields(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([_product(1), _product(2, brand_name="Acme")],
                        current_page=1, number_of_pages=2)
    fake_pim.queue_page([_product(3)], current_page=2, number_of_pages=2)

    summary = await SyncService(rpc_client, settings, writer=store).run()

    assert summary.status == "ok"
    assert summary.delta is False
    assert summary.projected == 3
    assert summary.pages_fetched == 2
    assert summary.skipped == 0
    assert summary.fields_written == 3 * 2 + 1
    assert summary.finished_at is not None
    assert fake_pim.methods == ["getProducts", "getProducts"]
    assert store.fields_for("2") == {
        "skwirrel_gtin": "8700000000002",
        "skwirrel_brand": "Acme",
        "skwirrel_product_id": 2,
    }


@pytest.mark.asyncio
async def test_delta_sync_uses_filter(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([_product(1)])

    summary = await SyncService(rpc_client, settings, writer=store).run(
        delta=True, updated_since="2024-01-01T00:00:00Z")

    assert summary.delta is True
    assert summary.updated_since == "2024-01-01T00:00:00Z"
    call = fake_pim.calls[0]
    assert call["method"] == "getProductsByFilter"
    assert call["params"]["filter"]["updated_on"]["datetime"] == "2024-01-01T00:00:00Z"
    assert call["params"]["options"]["include_trade_items"] is True


@pytest.mark.asyncio
async def test_delta_without_timestamp_runs_full(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([])

    summary = await SyncService(rpc_client, settings, writer=store).run(delta=True)

    assert summary.delta is False
    assert fake_pim.methods == ["getProducts"]


@pytest.mark.asyncio
async def test_records_without_id_are_skipped(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([{"product_gtin": "1"}, {"internal_product_code": "ACM-9"}])

    summary = await SyncService(rpc_client, settings, writer=store).run()

    assert summary.skipped == 1
    assert summary.projected == 1
    assert store.fields_for("ACM-9") == {"skwirrel_internal_code": "ACM-9"}


@pytest.mark.asyncio
async def test_page_failure_reports_partial_summary(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([_product(1), _product(2)], current_page=1, number_of_pages=3)
    fake_pim.queue(httpx.Response(200, json={
        "jsonrpc": "2.0", "id": 2,
        "error": {"code": 503, "message": "Index rebuilding", "data": {"retry": 60}},
    }))

    failed = []
    hooks = SyncHooks()
    hooks.on(SyncEvent.RUN_FAILED, failed.append)

    with pytest.raises(SyncRunException) as exc_info:
        await SyncService(rpc_client, settings, writer=store, hooks=hooks).run()

    exc = exc_info.value
    assert exc.message == "Index rebuilding"
    assert exc.error_code == "SYNC_RUN_FAILED"
    assert exc.details["cause_error_code"] == "RPC_REMOTE_ERROR"
    assert exc.details["cause_details"]["data"] == {"retry": 60}
    assert exc.summary.status == "failed"
    assert exc.summary.projected == 2
    assert exc.summary.pages_fetched == 1
    assert exc.details["summary"]["projected"] == 2
    assert store.fields_for("1") is not None
    assert len(failed) == 1


@pytest.mark.asyncio
async def test_missing_token_fails_the_run(fake_pim, settings_factory, store) -> None:
    settings = settings_factory(pim_auth_token="")
    failed = []
    hooks = SyncHooks()
    hooks.on(SyncEvent.RUN_FAILED, failed.append)

    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_pim)) as hc:
        client = JsonRpcClient(http_client=hc, settings=settings)
        with pytest.raises(SyncRunException) as exc_info:
            await SyncService(client, settings, writer=store, hooks=hooks).run()

    exc = exc_info.value
    assert exc.error_code == "SYNC_RUN_FAILED"
    assert exc.status_code == 401
    assert exc.details["cause_error_code"] == "AUTH_ERROR"
    assert exc.summary.status == "failed"
    assert exc.summary.projected == 0
    assert exc.summary.finished_at is not None
    assert len(failed) == 1
    assert fake_pim.requests == []


@pytest.mark.asyncio
async def test_write_failure_is_counted_and_run_continues(fake_pim, rpc_client, settings) -> None:
    class _FlakyWriter(KeyValueFieldStore):
        def write(self, entity_id, field_name, value):
            if entity_id == "2":
                raise RuntimeError("destination locked")
            super().write(entity_id, field_name, value)

    writer = _FlakyWriter()
    fake_pim.queue_page([_product(1), _product(2)], current_page=1, number_of_pages=2)
    fake_pim.queue_page([_product(3)], current_page=2, number_of_pages=2)

    summary = await SyncService(rpc_client, settings, writer=writer).run()

    assert summary.failed == 1
    assert summary.projected == 2
    assert writer.fields_for("3") is not None


@pytest.mark.asyncio
async def test_grouped_products_synced_first(fake_pim, rpc_client, settings_factory, store) -> None:
    settings = settings_factory(sync_grouped_products=True)
    fake_pim.queue_page([{"grouped_product_id": 50, "grouped_product_name": "Schroeven"}],
                        key="grouped_products")
    fake_pim.queue_page([_product(1)])

    summary = await SyncService(rpc_client, settings, writer=store).run()

    assert fake_pim.methods == ["getGroupedProducts", "getProducts"]
    assert fake_pim.calls[1]["params"]["include_grouped_products"] is True
    assert summary.grouped_projected == 1
    assert summary.projected == 1
    assert store.fields_for("50") == {
        "skwirrel_grouped_product_id": 50,
        "skwirrel_grouped_product_name": "Schroeven",
    }


@pytest.mark.asyncio
async def test_options_snapshot_controls_passes(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([_product(1, _trade_items=[{"ean": "456"}])])

    await SyncService(rpc_client, settings, writer=store).run(
        options=SyncOptions(sync_trade_items=True))

    assert store.fields_for("1")["skwirrel_ean"] == "456"


@pytest.mark.asyncio
async def test_events_and_failing_listener(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([_product(1)])

    projected, completed = [], []
    hooks = SyncHooks()
    hooks.on(SyncEvent.PROJECTION_COMPLETED, projected.append)
    hooks.on(SyncEvent.PROJECTION_COMPLETED, lambda payload: 1 / 0)
    hooks.on(SyncEvent.RUN_COMPLETED, completed.append)

    summary = await SyncService(rpc_client, settings, writer=store, hooks=hooks).run()

    assert summary.projected == 1
    assert projected == [{
        "entity_id": "1",
        "entity_kind": "product",
        "fields": ["skwirrel_gtin", "skwirrel_product_id"],
    }]
    assert completed[0]["run_id"] == summary.run_id


@pytest.mark.asyncio
async def test_deadline_truncates_run(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([_product(1), _product(2)], current_page=1, number_of_pages=5)
    fake_pim.queue_page([_product(3), _product(4)], current_page=2, number_of_pages=5)

    ticks = iter([0.0, 1.0, 1.5, 10.0])
    service = SyncService(rpc_client, settings, writer=store, clock=lambda: next(ticks))

    summary = await service.run(deadline_seconds=2)

    assert summary.truncated is True
    assert summary.projected == 2
    assert len(fake_pim.calls) == 2
    assert store.fields_for("3") is None


@pytest.mark.asyncio
async def test_run_id_context_is_reset(fake_pim, rpc_client, settings, store) -> None:
    fake_pim.queue_page([])
    seen = []
    hooks = SyncHooks()
    hooks.on(SyncEvent.RUN_COMPLETED, lambda payload: seen.append(sync_run_id_var.get()))

    summary = await SyncService(rpc_client, settings, writer=store, hooks=hooks).run()

    assert seen == [summary.run_id]
    assert sync_run_id_var.get() == "-"


def test_entity_id_for() -> None:
    assert entity_id_for({"product_id": 5, "internal_product_code": "X"}, EntityKind.PRODUCT) == "5"
    assert entity_id_for({"product_id": "", "internal_product_code": "X"}, EntityKind.PRODUCT) == "X"
    assert entity_id_for({"id": 9}, EntityKind.GROUPED) == "9"
    assert entity_id_for({"product_id": {"nested": 1}}, EntityKind.PRODUCT) is None


@pytest.mark.asyncio
async def test_group_members_are_projected_as_variations(
    fake_pim, rpc_client, settings_factory, store
) -> None:
    settings = settings_factory(sync_grouped_products=True)
    fake_pim.queue_page([{
        "grouped_product_id": 50,
        "_products": [
            {"product_id": 1, "internal_product_code": "A-1", "order": 1},
            {"internal_product_code": "B-3", "order": 2},
        ],
    }], key="grouped_products")
    extras = {
        "_trade_items": [{"ean": "456", "_trade_item_prices": [{"net_price": 10}]}],
        "_product_translations": [{"language": "nl", "product_description": "Schroef"}],
    }
    fake_pim.queue_page([_product(1, **extras), _product(2, **extras)],
                        current_page=1, number_of_pages=2)
    fake_pim.queue_page([_product(3, internal_product_code="B-3", **extras)],
                        current_page=2, number_of_pages=2)

    projected = []
    hooks = SyncHooks()
    hooks.on(SyncEvent.PROJECTION_COMPLETED, projected.append)

    summary = await SyncService(rpc_client, settings, writer=store, hooks=hooks).run(
        options=SyncOptions(sync_trade_items=True, sync_translations=True))

    assert summary.grouped_projected == 1
    assert summary.projected == 3
    assert summary.variations == 2
    assert [(e["entity_id"], e["entity_kind"]) for e in projected] == [
        ("50", "grouped"), ("1", "variation"), ("2", "product"), ("3", "variation")]

    for variation_id in ("1", "3"):
        fields = store.fields_for(variation_id)
        assert fields["skwirrel_product_id"] == int(variation_id)
        assert "skwirrel_prices" not in fields
        assert "skwirrel_ean" not in fields
        assert not any(name.startswith("skwirrel_translation_") for name in fields)

    standalone = store.fields_for("2")
    assert standalone["skwirrel_ean"] == "456"
    assert standalone["skwirrel_prices"][0]["net_price"] == 10
    assert standalone["skwirrel_translation_nl_description"] == "Schroef"


@pytest.mark.asyncio
async def test_without_grouped_sync_nothing_is_a_variation(
    fake_pim, rpc_client, settings, store
) -> None:
    fake_pim.queue_page([_product(1, _trade_items=[{"ean": "456"}])])

    summary = await SyncService(rpc_client, settings, writer=store).run(
        options=SyncOptions(sync_trade_items=True))

    assert summary.variations == 0
    assert store.fields_for("1")["skwirrel_ean"] == "456"


def test_member_keys() -> None:
    group = {"products": [{"product_id": 7, "internal_product_code": "X-7"}, 8, {"order": 3}, ""]}
    assert member_keys(group) == ["7", "sku:X-7", "8"]
    assert member_keys({"_products": "not-a-list"}) == []
    assert member_keys({}) == []


def test_kind_for_product() -> None:
    memberships = {"7": "50", "sku:X-9": "50"}
    assert kind_for_product({"product_id": 7}, memberships) == EntityKind.VARIATION
    assert kind_for_product(
        {"product_id": 9, "internal_product_code": "X-9"}, memberships) == EntityKind.VARIATION
    assert kind_for_product({"product_id": 10}, memberships) == EntityKind.PRODUCT
