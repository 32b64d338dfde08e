"""
Tests for the store's load lifecycle and background sync scheduling.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from orderdesk.defaults import DefaultData, parse_default_data, load_default_data
from orderdesk.state import AppStore, LoadState
from orderdesk.sync.adapter import RemoteSyncAdapter
from orderdesk.sync.backends import InMemoryBackend
from orderdesk.sync.columns import ITEMS, SUPPLIERS, PENDING_ORDERS, CURRENT_ORDER_TABLE
from orderdesk.schemas.orders import PendingOrder


def test_new_store_is_uninitialized(store):
    assert store.load_state == LoadState.UNINITIALIZED
    assert store.items == []
    assert store.current_order_metadata.payment_method == "CASH ON DELIVERY"


@pytest.mark.asyncio
async def test_empty_remote_loads_defaults_and_seeds_remote(store, backend, sample_data):
    await store.load()

    assert store.load_state == LoadState.READY
    assert store.items == sample_data.items
    assert store.suppliers == sample_data.suppliers
    assert store.pending_orders == []
    assert store.current_order == []

    results = await store.flush()

    assert results["items"].ok and results["items"].rows_written == 2
    assert results["suppliers"].ok
    assert {row["id"] for row in backend.rows("items")} == {"item-apple", "item-rice"}
    assert len(backend.rows(CURRENT_ORDER_TABLE)) == 1


@pytest.mark.asyncio
async def test_remote_data_is_adopted(store, backend, apple):
    backend.seed(ITEMS.name, [ITEMS.to_row(apple)])
    backend.seed(SUPPLIERS.name, [{"id": "s1", "name": "Fresh Farm", "telegram_id": "@ff"}])
    order = PendingOrder(
        id="po-1",
        supplier="Fresh Farm",
        store_tag="wb",
        items=[{"item": apple, "quantity": 4}],
        created_at=datetime(2025, 10, 21, tzinfo=timezone.utc),
    )
    backend.seed(PENDING_ORDERS.name, [PENDING_ORDERS.to_row(order)])
    backend.seed(CURRENT_ORDER_TABLE, [{
        "id": "cart",
        "items": [{"item": apple.model_dump(mode="json", by_alias=True), "quantity": 2, "storeTag": "o2"}],
        "payment_method": "Aba",
        "store": "o2",
    }])

    await store.load()
    await store.flush()

    assert [item.id for item in store.items] == [apple.id]
    assert store.suppliers[0].telegram_id == "@ff"
    assert store.pending_orders[0].items[0].quantity == 4
    assert store.current_order[0].store_tag == "o2"
    assert store.current_order_metadata.payment_method == "Aba"


@pytest.mark.asyncio
async def test_remote_with_no_items_ignores_other_tables(store, backend, sample_data):
    """Only a non-empty items table counts as existing remote data."""
    backend.seed(SUPPLIERS.name, [{"id": "s9", "name": "Someone"}])

    await store.load()

    assert store.suppliers == sample_data.suppliers
    assert store.pending_orders == []
    await store.flush()


@pytest.mark.asyncio
async def test_fetch_error_falls_back_to_defaults(store, backend, sample_data):
    backend.fail("pending_orders", "select")

    await store.load()

    assert store.load_state == LoadState.READY
    assert store.items == sample_data.items
    await store.flush()


@pytest.mark.asyncio
async def test_default_data_failure_still_reaches_ready(adapter):
    def broken_loader():
        raise OSError("default data missing")

    store = AppStore(adapter, default_data_loader=broken_loader)
    await store.load()

    assert store.load_state == LoadState.READY
    assert store.items == []
    await store.flush()


@pytest.mark.asyncio
async def test_load_twice_is_ignored(store, backend):
    await store.load()
    store.add_item({"name": "Lime", "supplier": "Fresh Farm"})
    await store.load()

    assert len(store.items) == 3
    await store.flush()


def test_mutations_before_load_do_not_sync(store, backend, apple):
    store.add_to_order(apple, 1)
    store.add_item({"name": "Lime", "supplier": "Fresh Farm"})

    assert store._dirty == set()
    assert backend.calls == []


@pytest.mark.asyncio
async def test_mutation_pushes_whole_collection(store, backend):
    await store.load()
    await store.flush()
    backend.calls.clear()

    store.add_item({"name": "Lime", "supplier": "Fresh Farm"})
    results = await store.flush()

    assert results["items"].rows_written == 3
    assert backend.calls.count(("items", "upsert")) == 3


@pytest.mark.asyncio
async def test_sync_failure_keeps_local_state(store, backend):
    await store.load()
    await store.flush()
    backend.fail("suppliers", "upsert", after=1)

    store.add_supplier({"name": "Kampot Pepper Co"})
    results = await store.flush()

    assert len(store.suppliers) == 3
    assert results["suppliers"].status.value == "failed"
    assert results["suppliers"].rows_written == 1


def test_mutations_outside_event_loop_are_deferred_until_flush(loaded_store, backend, apple):
    backend.calls.clear()
    loaded_store.add_to_order(apple, 2, "wb")
    loaded_store.update_order_metadata(store="wb")

    assert loaded_store._dirty == {"current_order"}
    assert backend.calls == []

    results = asyncio.run(loaded_store.flush())

    assert results["current_order"].ok
    row = backend.rows(CURRENT_ORDER_TABLE)[0]
    assert row["store"] == "wb"
    assert row["items"][0]["storeTag"] == "wb"


def test_parse_default_data_assigns_ids_and_payment_defaults():
    data = parse_default_data({
        "suppliers": [{"name": "A"}, {"name": "B", "defaultPaymentMethod": "BANK"}],
        "items": [{"name": "Salt", "supplier": "A", "measureUnit": "bag"}],
        "stores": [{"name": "Olympic", "tag": "o2"}],
    })

    assert [s.default_payment_method for s in data.suppliers] == ["CASH ON DELIVERY", "BANK"]
    assert data.items[0].id and data.items[0].measure_unit == "bag"
    assert data.stores[0].id == "o2"


def test_bundled_default_data_parses():
    data = load_default_data()

    assert isinstance(data, DefaultData)
    assert data.items and data.suppliers
    supplier_names = {supplier.name for supplier in data.suppliers}
    assert all(item.supplier in supplier_names for item in data.items)


class ResetBackend(InMemoryBackend):
    """Backend whose reads fail with an error the adapter does not translate."""

    def select(self, *args, **kwargs):
        raise RuntimeError("connection reset by peer")


@pytest.mark.asyncio
async def test_unexpected_fetch_exception_still_reaches_ready(sample_data):
    store = AppStore(RemoteSyncAdapter(ResetBackend()), default_data_loader=lambda: sample_data)

    await store.load()

    assert store.load_state == LoadState.READY
    assert store.items == sample_data.items

    results = await store.flush()
    # The cart push selects first, so it fails the same way and is recorded
    assert results["current_order"].status.value == "failed"
    assert "connection reset" in results["current_order"].error


@pytest.mark.asyncio
async def test_unexpected_default_loader_exception_still_reaches_ready(adapter):
    def broken_loader():
        raise RuntimeError("unreadable default data")

    store = AppStore(adapter, default_data_loader=broken_loader)
    await store.load()

    assert store.load_state == LoadState.READY
    await store.flush()


@pytest.mark.asyncio
async def test_unknown_payment_method_keeps_remote_data(store, backend, apple):
    backend.seed(ITEMS.name, [ITEMS.to_row(apple)])
    backend.seed(SUPPLIERS.name, [{"id": "s1", "name": "Fresh Farm", "default_payment_method": "Cash"}])

    await store.load()
    await store.flush()

    assert [item.id for item in store.items] == [apple.id]
    assert store.suppliers[0].id == "s1"
    assert store.suppliers[0].default_payment_method is None
    assert [row["id"] for row in backend.rows(ITEMS.name)] == [apple.id]
