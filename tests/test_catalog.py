"""
Tests for item and supplier operations.
"""

import logging

import pytest

from orderdesk.sync.adapter import RemoteStoreError


def test_add_item_generates_id(loaded_store):
    item = loaded_store.add_item({"name": "Lime", "supplier": "Fresh Farm", "unit_price": 0.2})

    assert item.id
    assert loaded_store.get_item(item.id) == item
    assert loaded_store.items[-1] == item


def test_add_item_accepts_camel_case_fields(loaded_store):
    item = loaded_store.add_item({"name": "Lime", "supplier": "Fresh Farm", "khmerName": "ក្រូចឆ្មា"})
    assert item.khmer_name == "ក្រូចឆ្មា"


def test_add_item_with_custom_id(loaded_store):
    item = loaded_store.add_item({"name": "Lime", "supplier": "Fresh Farm"}, custom_id="lime-01")
    assert item.id == "lime-01"


def test_duplicate_custom_id_is_kept_with_warning(loaded_store, apple, caplog):
    """Colliding ids are accepted: both records exist locally."""
    with caplog.at_level(logging.WARNING, logger="orderdesk.state"):
        loaded_store.add_item({"name": "Green Apple", "supplier": "Fresh Farm"}, custom_id=apple.id)

    assert [item.name for item in loaded_store.items if item.id == apple.id] == ["Apple", "Green Apple"]
    assert any("duplicate_item_id" in record.getMessage() for record in caplog.records)


def test_update_item_partial(loaded_store, apple):
    updated = loaded_store.update_item(apple.id, unit_price=1.75, order_count=4)

    assert updated.unit_price == 1.75
    assert updated.order_count == 4
    assert updated.name == "Apple"
    assert loaded_store.get_item(apple.id) == updated


def test_update_item_validates_values(loaded_store, apple):
    with pytest.raises(ValueError):
        loaded_store.update_item(apple.id, unit_price="not a number")
    assert loaded_store.get_item(apple.id).unit_price == 1.5


def test_update_missing_item_returns_none(loaded_store):
    assert loaded_store.update_item("missing", name="x") is None


def test_add_supplier_defaults_payment_method(loaded_store):
    supplier = loaded_store.add_supplier({"name": "Kampot Pepper Co", "telegram_id": "@kampot"})
    assert supplier.default_payment_method == "CASH ON DELIVERY"
    assert supplier.telegram_id == "@kampot"


def test_add_supplier_keeps_given_payment_method(loaded_store):
    supplier = loaded_store.add_supplier({"name": "Bank Only", "defaultPaymentMethod": "BANK"})
    assert supplier.default_payment_method == "BANK"


def test_add_supplier_rejects_unknown_payment_method(loaded_store):
    with pytest.raises(ValueError):
        loaded_store.add_supplier({"name": "Odd", "default_payment_method": "CHEQUE"})


def test_update_and_delete_supplier(loaded_store):
    loaded_store.update_supplier("sup-dry", contact="+855 11 000 111")
    assert loaded_store.get_supplier("sup-dry").contact == "+855 11 000 111"

    loaded_store.delete_supplier("sup-dry")
    assert loaded_store.get_supplier("sup-dry") is None


@pytest.mark.asyncio
async def test_delete_item_is_local_first_when_remote_delete_fails(store, backend, apple):
    """The item leaves memory even though the remote delete errors."""
    await store.load()
    await store.flush()
    backend.fail("items", "delete")

    task = store.delete_item(apple.id)

    assert store.get_item(apple.id) is None
    with pytest.raises(RemoteStoreError):
        await task

    results = await store.flush()
    assert results["delete:items"].status.value == "failed"


@pytest.mark.asyncio
async def test_delete_item_removes_remote_row(store, backend, apple):
    await store.load()
    await store.flush()
    assert apple.id in [row["id"] for row in backend.rows("items")]

    await store.delete_item(apple.id)
    await store.flush()

    assert apple.id not in [row["id"] for row in backend.rows("items")]
