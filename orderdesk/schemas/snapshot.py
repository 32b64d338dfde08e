"""
Export/import document covering every in-memory collection.
"""

from typing import Optional, List

from orderdesk.schemas.catalog import RecordModel, Item, Supplier
from orderdesk.schemas.orders import (
    OrderItem,
    PendingOrder,
    CompletedOrder,
    CurrentOrderMetadata,
)


class DataSnapshot(RecordModel):
    """
    Structural snapshot of the application state.

    Every field is optional: on import, a missing field leaves the matching
    collection untouched.
    """
    items: Optional[List[Item]] = None
    suppliers: Optional[List[Supplier]] = None
    completed_orders: Optional[List[CompletedOrder]] = None
    pending_orders: Optional[List[PendingOrder]] = None
    current_order: Optional[List[OrderItem]] = None
    current_order_metadata: Optional[CurrentOrderMetadata] = None

    def to_document(self) -> dict:
        """Serialize with camelCase keys, omitting absent collections."""
        data = self.model_dump(mode="json", by_alias=True)
        return {key: value for key, value in data.items() if value is not None}
