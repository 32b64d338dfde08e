"""
Catalog schema: items, suppliers and physical stores.
"""

from typing import Optional, Literal, get_args
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime


PaymentMethod = Literal["CASH ON DELIVERY", "Aba", "TrueMoney", "BANK"]
PAYMENT_METHODS = list(get_args(PaymentMethod))
DEFAULT_PAYMENT_METHOD: PaymentMethod = "CASH ON DELIVERY"

StoreTag = Literal["cv2", "o2", "wb", "sti", "myym", "leo"]
STORE_TAGS = list(get_args(StoreTag))

MEASURE_UNITS = ["kg", "pc", "can", "L", "bt", "pk", "jar", "bag", "small", "big"]


class RecordModel(BaseModel):
    """Base for every stored record. Exported documents use camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Item(RecordModel):
    """A purchasable item, linked to its supplier by name."""
    id: str
    name: str
    khmer_name: Optional[str] = None
    supplier: str
    measure_unit: Optional[str] = None  # usually one of MEASURE_UNITS
    unit_price: Optional[float] = None
    last_ordered: Optional[datetime] = None
    order_count: Optional[int] = None
    last_held: Optional[datetime] = None


class Supplier(RecordModel):
    """A supplier record."""
    id: str
    name: str
    contact: Optional[str] = None
    telegram_id: Optional[str] = None
    default_payment_method: Optional[PaymentMethod] = None


class Store(RecordModel):
    """A physical outlet that orders are placed for."""
    id: str
    name: str
    tag: StoreTag
    is_active: bool = True
