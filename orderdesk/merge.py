"""
Order merging.

A new pending order for a (supplier, store tag) pair that already has an open
order is folded into that order instead of creating a second one. Cart lines
are merged the same way, keyed by (item id, store tag).
"""

from typing import List, Optional, Sequence

from orderdesk.schemas.catalog import Item
from orderdesk.schemas.orders import OrderItem, PendingOrder, PendingOrderItem


def find_cart_line(lines: Sequence[OrderItem], item_id: str, store_tag: Optional[str]) -> Optional[int]:
    """Index of the cart line with this (item id, store tag), or None."""
    for index, line in enumerate(lines):
        if line.item.id == item_id and line.store_tag == store_tag:
            return index
    return None


def add_cart_line(
    lines: Sequence[OrderItem],
    item: Item,
    quantity: float,
    store_tag: Optional[str] = None,
) -> List[OrderItem]:
    """Return new cart lines with ``quantity`` of ``item`` added for ``store_tag``."""
    merged = list(lines)
    index = find_cart_line(merged, item.id, store_tag)
    if index is not None:
        existing = merged[index]
        merged[index] = existing.model_copy(update={"quantity": existing.quantity + quantity})
    else:
        merged.append(OrderItem(item=item, quantity=quantity, store_tag=store_tag))
    return merged


def find_open_order(
    orders: Sequence[PendingOrder],
    supplier: str,
    store_tag: Optional[str],
) -> Optional[PendingOrder]:
    """First pending/processing order for the same supplier and store tag."""
    for order in orders:
        if order.supplier == supplier and order.store_tag == store_tag and order.is_open():
            return order
    return None


def merge_order_lines(
    existing: Sequence[PendingOrderItem],
    incoming: Sequence[PendingOrderItem],
) -> List[PendingOrderItem]:
    """
    Fold ``incoming`` lines into ``existing`` by item id.

    Quantities are summed on collision; new items are appended in their
    incoming order. Existing line order is preserved.
    """
    merged = list(existing)
    for new_line in incoming:
        for index, line in enumerate(merged):
            if line.item.id == new_line.item.id:
                merged[index] = line.model_copy(update={"quantity": line.quantity + new_line.quantity})
                break
        else:
            merged.append(new_line)
    return merged


def cart_store_tags(lines: Sequence[OrderItem]) -> List[str]:
    """Distinct non-empty store tags in first-seen order."""
    tags: List[str] = []
    for line in lines:
        if line.store_tag and line.store_tag not in tags:
            tags.append(line.store_tag)
    return tags


def cart_suppliers(lines: Sequence[OrderItem]) -> List[str]:
    """Distinct supplier names in first-seen order."""
    suppliers: List[str] = []
    for line in lines:
        if line.item.supplier not in suppliers:
            suppliers.append(line.item.supplier)
    return suppliers


def to_pending_lines(lines: Sequence[OrderItem]) -> List[PendingOrderItem]:
    """Drop the per-line store tag when cart lines become order lines."""
    return [
        PendingOrderItem(item=line.item, quantity=line.quantity, is_new_item=line.is_new_item)
        for line in lines
    ]
