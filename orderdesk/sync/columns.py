"""
Field-to-column mappings for the remote tables.
Translates in-memory records into storage rows and back.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Type

from orderdesk.schemas.catalog import RecordModel, Item, Supplier, DEFAULT_PAYMENT_METHOD, PAYMENT_METHODS
from orderdesk.schemas.orders import (
    PendingOrder,
    CurrentOrder,
    CurrentOrderMetadata,
    OrderItem,
)
from orderdesk.utils import utc_now
from orderdesk.utils.logging import setup_logging, log_data_warning


logger = setup_logging(__name__)


def known_choice(table: str, column: str, value: Any, allowed: Sequence[str]) -> Any:
    """Return ``value`` if it is allowed, otherwise None with a data warning."""
    if value is None or value in allowed:
        return value
    log_data_warning(logger, f"unknown_{column}", f"{table}.{column} value {value!r} is not one of {list(allowed)}; dropped")
    return None


@dataclass(frozen=True)
class TableSpec:
    """How one entity collection is laid out in remote storage."""
    name: str
    model: Type[RecordModel]
    columns: Dict[str, str]  # field name -> column name
    order_by: str = "name"
    descending: bool = False
    json_columns: Tuple[str, ...] = ()
    column_defaults: Dict[str, Any] = field(default_factory=dict)
    choices: Dict[str, Sequence[str]] = field(default_factory=dict)  # column -> allowed values on read

    def to_row(self, entity: RecordModel) -> Dict[str, Any]:
        """Build an upsert row. Every call stamps a fresh updated_at."""
        data = entity.model_dump(mode="json")
        row = {}
        for field_name, column in self.columns.items():
            if field_name in self.json_columns:
                value = [
                    line.model_dump(mode="json", by_alias=True)
                    for line in getattr(entity, field_name)
                ]
            else:
                value = data.get(field_name)
            if value is None and column in self.column_defaults:
                value = self.column_defaults[column]
            row[column] = value
        row["updated_at"] = utc_now().isoformat()
        return row

    def from_row(self, row: Dict[str, Any]) -> RecordModel:
        """Map a fetched row back onto the record's field names."""
        values = {}
        for field_name, column in self.columns.items():
            value = row.get(column)
            if field_name in self.json_columns:
                value = value or []
            elif column in self.choices:
                value = known_choice(self.name, column, value, self.choices[column])
            values[field_name] = value
        if "updated_at" in self.model.model_fields and "updated_at" not in self.columns:
            values["updated_at"] = row.get("updated_at")
        return self.model.model_validate(values)


ITEMS = TableSpec(
    name="items",
    model=Item,
    columns={
        "id": "id",
        "name": "name",
        "khmer_name": "khmer_name",
        "supplier": "supplier",
        "measure_unit": "measure_unit",
        "unit_price": "unit_price",
        "last_ordered": "last_ordered",
        "order_count": "order_count",
        "last_held": "last_held",
    },
)

SUPPLIERS = TableSpec(
    name="suppliers",
    model=Supplier,
    columns={
        "id": "id",
        "name": "name",
        "contact": "contact",
        "telegram_id": "telegram_id",
        "default_payment_method": "default_payment_method",
    },
    choices={"default_payment_method": PAYMENT_METHODS},
)

PENDING_ORDERS = TableSpec(
    name="pending_orders",
    model=PendingOrder,
    columns={
        "id": "id",
        "supplier": "supplier",
        "items": "items",
        "status": "status",
        "store_tag": "store_tag",
        "payment_method": "payment_method",
        "contact_person": "contact_person",
        "notes": "notes",
        "invoice_url": "invoice_url",
        "amount": "amount",
        "is_received": "is_received",
        "is_paid": "is_paid",
        "completed_at": "completed_at",
        "created_at": "created_at",
    },
    order_by="created_at",
    descending=True,
    json_columns=("items",),
    column_defaults={"payment_method": DEFAULT_PAYMENT_METHOD},
    choices={"payment_method": PAYMENT_METHODS},
)

CURRENT_ORDER_TABLE = "current_order"


def current_order_to_row(current: CurrentOrder, include_timestamp: bool = True) -> Dict[str, Any]:
    """Build the singleton cart row."""
    row = {
        "items": [line.model_dump(mode="json", by_alias=True) for line in current.items],
        "payment_method": current.metadata.payment_method,
        "store": current.metadata.store,
    }
    if include_timestamp:
        row["updated_at"] = utc_now().isoformat()
    return row


def current_order_from_row(row: Optional[Dict[str, Any]]) -> CurrentOrder:
    """Map the singleton cart row back; an absent row is an empty cart."""
    if not row:
        return CurrentOrder()
    return CurrentOrder(
        items=[OrderItem.model_validate(line) for line in (row.get("items") or [])],
        metadata=CurrentOrderMetadata(
            payment_method=known_choice(CURRENT_ORDER_TABLE, "payment_method", row.get("payment_method"), PAYMENT_METHODS),
            store=row.get("store"),
        ),
    )
