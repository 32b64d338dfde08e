"""
Tests for snapshot export and import.
"""

import json
import logging

import pytest

from orderdesk import config as config_module
from orderdesk.defaults import DefaultData
from orderdesk.main import read_snapshot, write_snapshot, warn_if_ephemeral
from orderdesk.schemas.snapshot import DataSnapshot
from orderdesk.state import AppStore
from orderdesk.sync.adapter import RemoteSyncAdapter
from orderdesk.sync.backends import InMemoryBackend


@pytest.fixture
def busy_store(loaded_store, apple, rice):
    """A store with something in every collection."""
    loaded_store.add_pending_order({"supplier": "Fresh Farm", "store_tag": "wb", "items": [{"item": apple, "quantity": 2}]})
    loaded_store.add_to_order(rice, 1, "o2")
    loaded_store.complete_order()
    loaded_store.add_to_order(apple, 4, "wb")
    loaded_store.update_order_metadata(payment_method="TrueMoney", store="wb")
    return loaded_store


def test_export_contains_every_collection(busy_store):
    document = busy_store.export_data().to_document()

    assert set(document) == {
        "items", "suppliers", "completedOrders", "pendingOrders", "currentOrder", "currentOrderMetadata"
    }
    assert document["currentOrder"][0]["storeTag"] == "wb"
    assert document["currentOrderMetadata"]["paymentMethod"] == "TrueMoney"
    assert document["pendingOrders"][0]["storeTag"] == "wb"


def test_import_only_items_leaves_other_collections(busy_store):
    suppliers = list(busy_store.suppliers)
    pending = list(busy_store.pending_orders)
    completed = list(busy_store.completed_orders)
    cart = list(busy_store.current_order)

    busy_store.import_data({"items": [{"id": "x1", "name": "Salt", "supplier": "Dry Goods"}]})

    assert [item.id for item in busy_store.items] == ["x1"]
    assert busy_store.suppliers == suppliers
    assert busy_store.pending_orders == pending
    assert busy_store.completed_orders == completed
    assert busy_store.current_order == cart


def test_import_empty_list_replaces_collection(busy_store):
    busy_store.import_data({"pendingOrders": []})
    assert busy_store.pending_orders == []
    assert busy_store.items


def test_round_trip_reproduces_snapshot(busy_store):
    exported = busy_store.export_data()

    busy_store.import_data(exported.to_document())

    assert busy_store.export_data() == exported


def test_round_trip_into_fresh_store(busy_store):
    document = json.loads(json.dumps(busy_store.export_data().to_document()))
    fresh = AppStore(RemoteSyncAdapter(InMemoryBackend()), default_data_loader=lambda: DefaultData())

    fresh.import_data(document)

    assert fresh.export_data() == busy_store.export_data()


def test_invalid_import_changes_nothing(busy_store):
    items = list(busy_store.items)

    with pytest.raises(ValueError):
        busy_store.import_data({"items": [{"name": "no id or supplier"}]})

    assert busy_store.items == items


def test_snapshot_file_round_trip(busy_store, tmp_path):
    path = tmp_path / "backup.json"
    snapshot = busy_store.export_data()

    write_snapshot(snapshot, str(path))

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert "completedOrders" in raw
    assert read_snapshot(str(path)) == snapshot


def test_partial_snapshot_document_omits_absent_fields():
    document = DataSnapshot(items=[]).to_document()
    assert document == {"items": []}


def test_cli_warns_on_memory_backend(caplog):
    with caplog.at_level(logging.WARNING, logger="orderdesk.main"):
        assert warn_if_ephemeral(config_module.TestConfig())

    assert "REMOTE_BACKEND is 'memory'" in caplog.text


def test_cli_quiet_on_remote_backend():
    cfg = config_module.TestConfig()
    cfg.REMOTE_BACKEND = "supabase"

    assert not warn_if_ephemeral(cfg)
