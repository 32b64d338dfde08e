"""
Bundled default dataset used on first run, when remote storage is empty.
"""

import json
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from orderdesk.schemas.catalog import Item, Supplier, Store, DEFAULT_PAYMENT_METHOD
from orderdesk.utils import new_id
from orderdesk.utils.logging import setup_logging
from orderdesk.config import get_config


logger = setup_logging(__name__)
config = get_config()


class DefaultData(BaseModel):
    """Catalog records parsed from the default dataset."""
    items: List[Item] = Field(default_factory=list)
    suppliers: List[Supplier] = Field(default_factory=list)
    stores: List[Store] = Field(default_factory=list)


def parse_default_data(document: Dict[str, Any]) -> DefaultData:
    """
    Parse the default dataset document.

    Records without an id get a fresh one. Suppliers without a payment
    method get the default one.
    """
    suppliers = [
        Supplier.model_validate({
            "id": new_id(),
            "defaultPaymentMethod": DEFAULT_PAYMENT_METHOD,
            **raw,
        })
        for raw in document.get("suppliers", [])
    ]
    items = [
        Item.model_validate({"id": new_id(), **raw})
        for raw in document.get("items", [])
    ]
    stores = [
        Store.model_validate({"id": raw.get("tag") or new_id(), **raw})
        for raw in document.get("stores", [])
    ]
    return DefaultData(items=items, suppliers=suppliers, stores=stores)


def load_default_data(path: str = None) -> DefaultData:
    """Load and parse the default dataset from a JSON file."""
    if path is None:
        path = config.DEFAULT_DATA_PATH

    with open(path, 'r', encoding='utf-8') as f:
        document = json.load(f)

    data = parse_default_data(document)
    logger.info(
        f"Loaded default data from {path}: {len(data.items)} items, "
        f"{len(data.suppliers)} suppliers, {len(data.stores)} stores"
    )
    return data
