"""
Remote sync adapter.
Pushes in-memory collections to the remote tables and reads them back.
"""

import asyncio
from typing import Any, Callable, Dict, List, Sequence

from pydantic import ValidationError

from orderdesk.schemas.catalog import Item, Supplier
from orderdesk.schemas.orders import PendingOrder, CurrentOrder, OrderItem, CurrentOrderMetadata
from orderdesk.sync.backends import RemoteBackend, Result
from orderdesk.sync.columns import (
    TableSpec,
    ITEMS,
    SUPPLIERS,
    PENDING_ORDERS,
    CURRENT_ORDER_TABLE,
    current_order_to_row,
    current_order_from_row,
)
from orderdesk.sync.guard import OverlapPolicy, SyncGuard, SyncResult, SyncStatus
from orderdesk.utils.logging import setup_logging, log_sync_event, log_data_warning


logger = setup_logging(__name__)

CATEGORIES = ("items", "suppliers", "pending_orders", "current_order")


class RemoteStoreError(Exception):
    """A remote read or write failed."""

    def __init__(self, table: str, operation: str, cause: Any, rows_written: int = 0):
        super().__init__(f"{operation} on {table} failed: {cause}")
        self.table = table
        self.operation = operation
        self.cause = cause
        self.rows_written = rows_written


class RemoteSyncAdapter:
    """
    Translates between in-memory collections and the remote tables.

    The raw operations (``push_all``, ``fetch_all``, ``delete_one``,
    ``push_singleton``, ``fetch_singleton``) raise :class:`RemoteStoreError`.
    The ``sync_*`` operations run a push behind the category's guard and
    report the outcome as a :class:`SyncResult` instead of raising.

    Pushes are not transactional: if row N fails, rows before it stay
    written remotely and the error carries ``rows_written``.
    """

    def __init__(self, backend: RemoteBackend, policy: OverlapPolicy = OverlapPolicy.LATEST):
        self.backend = backend
        self.guards: Dict[str, SyncGuard] = {
            category: SyncGuard(category, policy) for category in CATEGORIES
        }

    async def _call(self, method: Callable[..., Result], *args, **kwargs) -> Result:
        # Backends are blocking clients; keep the event loop free
        return await asyncio.to_thread(method, *args, **kwargs)

    # ---- Collections ----

    async def push_all(self, spec: TableSpec, entities: Sequence[Any]) -> int:
        """Upsert every entity keyed on id. Returns the number of rows written."""
        written = 0
        for entity in entities:
            _, error = await self._call(self.backend.upsert, spec.name, spec.to_row(entity), on_conflict="id")
            if error is not None:
                raise RemoteStoreError(spec.name, "upsert", error, rows_written=written)
            written += 1
        return written

    async def fetch_all(self, spec: TableSpec) -> List[Any]:
        """
        Fetch all rows in the table's natural order. An empty table yields [].

        Rows that do not validate are skipped with a data warning.
        """
        data, error = await self._call(
            self.backend.select, spec.name, order_by=spec.order_by, descending=spec.descending
        )
        if error is not None:
            raise RemoteStoreError(spec.name, "select", error)
        records = []
        for row in data or []:
            try:
                records.append(spec.from_row(row))
            except ValidationError as e:
                log_data_warning(logger, "invalid_remote_row", f"skipped {spec.name} row {row.get('id')}: {e.error_count()} validation errors")
        return records

    async def delete_one(self, spec: TableSpec, entity_id: str) -> None:
        """Delete one row by id. Does not touch in-memory state."""
        _, error = await self._call(self.backend.delete, spec.name, entity_id)
        if error is not None:
            raise RemoteStoreError(spec.name, "delete", error)

    # ---- Singleton cart ----

    async def push_singleton(self, items: Sequence[OrderItem], metadata: CurrentOrderMetadata) -> int:
        """Insert the cart row if none exists, otherwise update it in place."""
        current = CurrentOrder(items=list(items), metadata=metadata)
        data, error = await self._call(self.backend.select, CURRENT_ORDER_TABLE, limit=1)
        if error is not None:
            raise RemoteStoreError(CURRENT_ORDER_TABLE, "select", error)

        if data:
            _, error = await self._call(
                self.backend.update, CURRENT_ORDER_TABLE, current_order_to_row(current), data[0]["id"]
            )
            operation = "update"
        else:
            _, error = await self._call(
                self.backend.insert, CURRENT_ORDER_TABLE, current_order_to_row(current, include_timestamp=False)
            )
            operation = "insert"

        if error is not None:
            raise RemoteStoreError(CURRENT_ORDER_TABLE, operation, error)
        return 1

    async def fetch_singleton(self) -> CurrentOrder:
        """Fetch the cart row. No row means an empty cart with the default payment method."""
        data, error = await self._call(self.backend.select, CURRENT_ORDER_TABLE, limit=1)
        if error is not None:
            raise RemoteStoreError(CURRENT_ORDER_TABLE, "select", error)
        return current_order_from_row(data[0] if data else None)

    # ---- Per-entity helpers ----

    async def fetch_items(self) -> List[Item]:
        return await self.fetch_all(ITEMS)

    async def fetch_suppliers(self) -> List[Supplier]:
        return await self.fetch_all(SUPPLIERS)

    async def fetch_pending_orders(self) -> List[PendingOrder]:
        return await self.fetch_all(PENDING_ORDERS)

    async def delete_item(self, item_id: str) -> None:
        await self.delete_one(ITEMS, item_id)

    async def delete_supplier(self, supplier_id: str) -> None:
        await self.delete_one(SUPPLIERS, supplier_id)

    async def delete_pending_order(self, order_id: str) -> None:
        await self.delete_one(PENDING_ORDERS, order_id)

    # ---- Guarded background pushes ----

    async def _guarded(self, category: str, push: Callable[[], Any]) -> SyncResult:
        async def job() -> SyncResult:
            try:
                rows = await push()
            except RemoteStoreError as e:
                result = SyncResult(
                    category=category,
                    status=SyncStatus.FAILED,
                    rows_written=e.rows_written,
                    error=str(e),
                )
            else:
                result = SyncResult(category=category, status=SyncStatus.OK, rows_written=rows)
            log_sync_event(logger, category, result.status.value, result.rows_written, result.error)
            return result

        return await self.guards[category].run(job)

    async def sync_items(self, items: Sequence[Item]) -> SyncResult:
        return await self._guarded("items", lambda: self.push_all(ITEMS, items))

    async def sync_suppliers(self, suppliers: Sequence[Supplier]) -> SyncResult:
        return await self._guarded("suppliers", lambda: self.push_all(SUPPLIERS, suppliers))

    async def sync_pending_orders(self, orders: Sequence[PendingOrder]) -> SyncResult:
        return await self._guarded("pending_orders", lambda: self.push_all(PENDING_ORDERS, orders))

    async def sync_current_order(self, items: Sequence[OrderItem], metadata: CurrentOrderMetadata) -> SyncResult:
        return await self._guarded("current_order", lambda: self.push_singleton(items, metadata))
