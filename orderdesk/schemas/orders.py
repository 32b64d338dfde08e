"""
Order schemas: the working cart, pending orders and completed orders.
"""

from typing import Optional, List
from pydantic import Field
from datetime import datetime

from orderdesk.schemas.catalog import (
    RecordModel,
    Item,
    PaymentMethod,
    DEFAULT_PAYMENT_METHOD,
)


OPEN_STATUSES = ("pending", "processing")


class OrderItem(RecordModel):
    """A line in the current order. Keyed by (item.id, store_tag)."""
    item: Item
    quantity: float = Field(gt=0)
    store_tag: Optional[str] = None
    is_new_item: Optional[bool] = None


class PendingOrderItem(RecordModel):
    """A line in a pending or completed order. The store tag lives on the order."""
    item: Item
    quantity: float = Field(gt=0)
    is_new_item: Optional[bool] = None


class PendingOrder(RecordModel):
    """An order placed with a supplier that has not been finalized."""
    id: str
    supplier: str
    items: List[PendingOrderItem] = Field(default_factory=list)
    status: str = "pending"  # pending, processing, completed, or any extension value
    store_tag: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    contact_person: Optional[str] = None
    notes: Optional[str] = None
    invoice_url: Optional[str] = None
    amount: Optional[float] = None
    is_received: Optional[bool] = None
    is_paid: Optional[bool] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    def is_open(self) -> bool:
        """Open orders still accept merged lines."""
        return self.status in OPEN_STATUSES


class PendingOrderDraft(RecordModel):
    """Caller-supplied fields for a new pending order (no id or timestamps)."""
    supplier: str
    items: List[PendingOrderItem] = Field(default_factory=list)
    status: str = "pending"
    store_tag: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    contact_person: Optional[str] = None
    notes: Optional[str] = None
    invoice_url: Optional[str] = None
    amount: Optional[float] = None
    is_received: Optional[bool] = None
    is_paid: Optional[bool] = None
    completed_at: Optional[datetime] = None


class CompletedOrder(RecordModel):
    """Terminal snapshot of a finalized order."""
    id: str
    supplier: str
    items: List[PendingOrderItem] = Field(default_factory=list)
    store_tags: List[str] = Field(default_factory=list)
    amount: Optional[float] = None
    invoice_url: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    contact_person: Optional[str] = None
    notes: Optional[str] = None
    is_received: Optional[bool] = None
    is_paid: Optional[bool] = None
    completed_at: datetime
    created_at: datetime
    updated_at: Optional[datetime] = None


class CurrentOrderMetadata(RecordModel):
    """Metadata attached to the cart until it is finalized."""
    payment_method: Optional[PaymentMethod] = DEFAULT_PAYMENT_METHOD
    store: Optional[str] = None


class CurrentOrder(RecordModel):
    """The cart as stored in the singleton current_order table."""
    items: List[OrderItem] = Field(default_factory=list)
    metadata: CurrentOrderMetadata = Field(default_factory=CurrentOrderMetadata)
