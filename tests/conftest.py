"""
Shared fixtures for the ordering desk tests.
"""

import os

# Configuration is read at import time; select the test profile first
os.environ.setdefault("ENV", "test")

import asyncio

import pytest

from orderdesk.defaults import DefaultData
from orderdesk.schemas.catalog import Item, Supplier, Store
from orderdesk.state import AppStore
from orderdesk.sync.adapter import RemoteSyncAdapter
from orderdesk.sync.backends import InMemoryBackend


@pytest.fixture
def apple():
    return Item(id="item-apple", name="Apple", supplier="Fresh Farm", measure_unit="kg", unit_price=1.5)


@pytest.fixture
def rice():
    return Item(id="item-rice", name="Rice", supplier="Dry Goods", measure_unit="bag", unit_price=22.0)


@pytest.fixture
def sample_data(apple, rice):
    """Small default dataset used instead of the bundled file."""
    return DefaultData(
        items=[apple, rice],
        suppliers=[
            Supplier(id="sup-fresh", name="Fresh Farm", default_payment_method="Aba"),
            Supplier(id="sup-dry", name="Dry Goods", default_payment_method="CASH ON DELIVERY"),
        ],
        stores=[Store(id="wb", name="Wat Botum", tag="wb")],
    )


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def adapter(backend):
    return RemoteSyncAdapter(backend)


@pytest.fixture
def store(adapter, sample_data):
    """A store that has not been loaded yet."""
    return AppStore(adapter, default_data_loader=lambda: sample_data)


@pytest.fixture
def loaded_store(store):
    """A READY store whose initial syncs have finished (for synchronous tests)."""
    async def load_and_flush():
        await store.load()
        await store.flush()

    asyncio.run(load_and_flush())
    return store
