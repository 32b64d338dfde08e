"""
Application state store.
Holds the authoritative in-memory collections and pushes changes to remote storage.
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Type, Union

from pydantic import BaseModel

from orderdesk.defaults import DefaultData, load_default_data
from orderdesk.merge import (
    add_cart_line,
    cart_store_tags,
    cart_suppliers,
    find_cart_line,
    find_open_order,
    merge_order_lines,
    to_pending_lines,
)
from orderdesk.schemas.catalog import Item, Supplier, Store, DEFAULT_PAYMENT_METHOD
from orderdesk.schemas.orders import (
    OrderItem,
    PendingOrder,
    PendingOrderDraft,
    CompletedOrder,
    CurrentOrderMetadata,
)
from orderdesk.schemas.snapshot import DataSnapshot
from orderdesk.sync.adapter import RemoteSyncAdapter
from orderdesk.sync.columns import TableSpec, ITEMS, SUPPLIERS, PENDING_ORDERS
from orderdesk.sync.guard import SyncResult, SyncStatus
from orderdesk.utils import new_id, utc_now
from orderdesk.utils.logging import setup_logging, log_data_warning


logger = setup_logging(__name__)


class LoadState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


def _as_dict(data: Union[BaseModel, Dict[str, Any]], exclude: Tuple[str, ...] = ()) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    return {key: value for key, value in data.items() if key not in exclude}


def _with_changes(record: BaseModel, changes: Dict[str, Any]) -> BaseModel:
    """Validated copy of ``record`` with ``changes`` applied (partial update)."""
    model: Type[BaseModel] = type(record)
    unknown = set(changes) - set(model.model_fields)
    if unknown:
        raise ValueError(f"Unknown {model.__name__} fields: {', '.join(sorted(unknown))}")
    return model.model_validate({**record.model_dump(), **changes})


def _check_quantity(quantity: float) -> None:
    if quantity <= 0:
        raise ValueError(f"Quantity must be positive, got {quantity}")


class AppStore:
    """
    Authoritative in-memory state for items, suppliers, the current order,
    pending orders and completed orders.

    Lifecycle: construct, ``await load()``, then mutate. While loading no
    background syncs are scheduled. Every mutation after that schedules a
    push of the whole affected collection; pushes run as tasks on the
    running event loop, or are deferred until ``await flush()`` when
    mutations happen outside one.

    Local state is never rolled back when a push fails. The latest outcome
    per category is kept in ``last_sync_results``.

    Consistency gaps: a whole-collection push that fails part way leaves the
    rows written before the failure in place. A remote delete runs alongside
    any push of the same collection that is already in flight; if that push
    captured the collection before the delete, it can upsert the deleted row
    back. Nothing reconciles either case.
    """

    def __init__(
        self,
        adapter: RemoteSyncAdapter,
        default_data_loader: Callable[[], DefaultData] = load_default_data,
    ):
        self.adapter = adapter
        self._default_data_loader = default_data_loader
        self.load_state = LoadState.UNINITIALIZED

        self.items: List[Item] = []
        self.suppliers: List[Supplier] = []
        self.stores: List[Store] = []
        self.current_order: List[OrderItem] = []
        self.current_order_metadata = CurrentOrderMetadata()
        self.completed_orders: List[CompletedOrder] = []
        self.pending_orders: List[PendingOrder] = []

        self.last_sync_results: Dict[str, SyncResult] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._dirty: Set[str] = set()
        self._deferred_deletes: List[Tuple[TableSpec, str]] = []

    @property
    def ready(self) -> bool:
        return self.load_state == LoadState.READY

    # ---- Lifecycle ----

    async def load(self) -> None:
        """
        Fetch all collections from remote storage and become ready.

        Remote data is adopted only when the items table is non-empty;
        otherwise, or on any fetch error, the bundled defaults populate items
        and suppliers. The store always ends up READY.
        """
        if self.load_state != LoadState.UNINITIALIZED:
            logger.warning(f"load() called in state {self.load_state.value}; ignoring")
            return

        self.load_state = LoadState.LOADING
        logger.info("Loading data from remote storage")

        try:
            items, suppliers, pending_orders, current = await asyncio.gather(
                self.adapter.fetch_items(),
                self.adapter.fetch_suppliers(),
                self.adapter.fetch_pending_orders(),
                self.adapter.fetch_singleton(),
            )
        except Exception as e:
            logger.error(f"Failed to load from remote storage: {e}")
            self.load_default_data()
        else:
            if items:
                self.items = items
                self.suppliers = suppliers
                self.pending_orders = pending_orders
                self.current_order = current.items
                self.current_order_metadata = current.metadata
                logger.info(
                    f"Loaded {len(items)} items, {len(suppliers)} suppliers, "
                    f"{len(pending_orders)} pending orders from remote storage"
                )
            else:
                logger.info("Remote storage is empty; using default data")
                self.load_default_data()

        self.load_state = LoadState.READY

        # Initial push seeds an empty remote store with whatever was adopted
        for category in ("items", "suppliers", "pending_orders", "current_order"):
            self._schedule_sync(category)

    def load_default_data(self) -> None:
        """Replace items and suppliers with the bundled default dataset."""
        try:
            data = self._default_data_loader()
        except Exception as e:
            logger.error(f"Failed to load default data: {e}")
            return

        self.items = list(data.items)
        self.suppliers = list(data.suppliers)
        self.stores = list(data.stores)
        self._schedule_sync("items")
        self._schedule_sync("suppliers")

    async def flush(self) -> Dict[str, SyncResult]:
        """Run deferred pushes and deletes, then wait for every sync task."""
        dirty, self._dirty = self._dirty, set()
        deletes, self._deferred_deletes = self._deferred_deletes, []

        for spec, entity_id in deletes:
            self._track(asyncio.create_task(self.adapter.delete_one(spec, entity_id)), f"delete:{spec.name}")
        for category in sorted(dirty):
            self._track(asyncio.create_task(self._sync(category)), category)

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

        return dict(self.last_sync_results)

    # ---- Background sync ----

    def _push_for(self, category: str) -> Callable[[], Any]:
        # Capture the collection as it is now; later mutations schedule their own push
        if category == "items":
            items = list(self.items)
            return lambda: self.adapter.sync_items(items)
        if category == "suppliers":
            suppliers = list(self.suppliers)
            return lambda: self.adapter.sync_suppliers(suppliers)
        if category == "pending_orders":
            orders = list(self.pending_orders)
            return lambda: self.adapter.sync_pending_orders(orders)
        if category == "current_order":
            lines = list(self.current_order)
            metadata = self.current_order_metadata
            return lambda: self.adapter.sync_current_order(lines, metadata)
        raise ValueError(f"Unknown sync category: {category}")

    async def _sync(self, category: str, push: Optional[Callable[[], Any]] = None) -> SyncResult:
        if push is None:
            push = self._push_for(category)
        result = await push()
        self.last_sync_results[category] = result
        return result

    def _track(self, task: asyncio.Task, label: str) -> None:
        self._tasks.add(task)

        def done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.error(f"Background {label} failed: {error}")
                self.last_sync_results[label] = SyncResult(
                    category=label, status=SyncStatus.FAILED, error=str(error)
                )

        task.add_done_callback(done)

    def _schedule_sync(self, category: str) -> None:
        if not self.ready:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._dirty.add(category)
            return
        self._track(loop.create_task(self._sync(category, self._push_for(category))), category)

    def _schedule_delete(self, spec: TableSpec, entity_id: str) -> Optional[asyncio.Task]:
        """
        Delete one remote row in the background.

        The returned task raises :class:`RemoteStoreError` when awaited if the
        remote delete failed; the local removal has already happened.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred_deletes.append((spec, entity_id))
            return None
        task = loop.create_task(self.adapter.delete_one(spec, entity_id))
        self._track(task, f"delete:{spec.name}")
        return task

    # ---- Items ----

    def get_item(self, item_id: str) -> Optional[Item]:
        return next((item for item in self.items if item.id == item_id), None)

    def add_item(self, item: Union[Item, Dict[str, Any]], custom_id: Optional[str] = None) -> Item:
        """Append an item under ``custom_id`` or a fresh id. Duplicate ids are accepted with a warning."""
        item_id = custom_id or new_id()
        if self.get_item(item_id) is not None:
            log_data_warning(logger, "duplicate_item_id", f"item id {item_id} already exists; keeping both")
        new_item = Item.model_validate({**_as_dict(item, exclude=("id",)), "id": item_id})
        self.items = [*self.items, new_item]
        self._schedule_sync("items")
        return new_item

    def update_item(self, item_id: str, **changes) -> Optional[Item]:
        updated = None
        items = []
        for item in self.items:
            if item.id == item_id:
                item = updated = _with_changes(item, changes)
            items.append(item)
        if updated is None:
            return None
        self.items = items
        self._schedule_sync("items")
        return updated

    def delete_item(self, item_id: str) -> Optional[asyncio.Task]:
        """Remove the item locally, then delete it remotely in the background."""
        self.items = [item for item in self.items if item.id != item_id]
        self._schedule_sync("items")
        return self._schedule_delete(ITEMS, item_id)

    # ---- Suppliers ----

    def get_supplier(self, supplier_id: str) -> Optional[Supplier]:
        return next((supplier for supplier in self.suppliers if supplier.id == supplier_id), None)

    def add_supplier(self, supplier: Union[Supplier, Dict[str, Any]]) -> Supplier:
        """Append a supplier; the payment method defaults to cash on delivery."""
        data = _as_dict(supplier, exclude=("id",))
        by_name = data.pop("default_payment_method", None)
        by_alias = data.pop("defaultPaymentMethod", None)
        new_supplier = Supplier.model_validate({
            **data,
            "id": new_id(),
            "default_payment_method": by_name or by_alias or DEFAULT_PAYMENT_METHOD,
        })
        self.suppliers = [*self.suppliers, new_supplier]
        self._schedule_sync("suppliers")
        return new_supplier

    def update_supplier(self, supplier_id: str, **changes) -> Optional[Supplier]:
        updated = None
        suppliers = []
        for supplier in self.suppliers:
            if supplier.id == supplier_id:
                supplier = updated = _with_changes(supplier, changes)
            suppliers.append(supplier)
        if updated is None:
            return None
        self.suppliers = suppliers
        self._schedule_sync("suppliers")
        return updated

    def delete_supplier(self, supplier_id: str) -> Optional[asyncio.Task]:
        self.suppliers = [supplier for supplier in self.suppliers if supplier.id != supplier_id]
        self._schedule_sync("suppliers")
        return self._schedule_delete(SUPPLIERS, supplier_id)

    # ---- Current order ----

    def add_to_order(self, item: Item, quantity: float, store_tag: Optional[str] = None) -> None:
        """Add to the cart; an existing (item, store tag) line has its quantity increased."""
        _check_quantity(quantity)
        self.current_order = add_cart_line(self.current_order, item, quantity, store_tag)
        self._schedule_sync("current_order")

    def update_order_item(self, item_id: str, quantity: float, store_tag: Optional[str] = None) -> None:
        _check_quantity(quantity)
        index = find_cart_line(self.current_order, item_id, store_tag)
        if index is None:
            return
        lines = list(self.current_order)
        lines[index] = lines[index].model_copy(update={"quantity": quantity})
        self.current_order = lines
        self._schedule_sync("current_order")

    def remove_from_order(self, item_id: str, store_tag: Optional[str] = None) -> None:
        index = find_cart_line(self.current_order, item_id, store_tag)
        if index is None:
            return
        self.current_order = [line for i, line in enumerate(self.current_order) if i != index]
        self._schedule_sync("current_order")

    def update_order_metadata(self, **changes) -> CurrentOrderMetadata:
        self.current_order_metadata = _with_changes(self.current_order_metadata, changes)
        self._schedule_sync("current_order")
        return self.current_order_metadata

    def clear_order(self) -> None:
        self.current_order = []
        self.current_order_metadata = CurrentOrderMetadata(payment_method=DEFAULT_PAYMENT_METHOD)
        self._schedule_sync("current_order")

    def complete_order(self) -> Optional[CompletedOrder]:
        """
        Snapshot the cart as a completed order and clear it.

        The supplier is taken from the first line. Carts spanning several
        suppliers are completed anyway and logged as a data warning.
        Pending orders are not touched.
        """
        if not self.current_order:
            return None

        suppliers = cart_suppliers(self.current_order)
        if len(suppliers) > 1:
            log_data_warning(
                logger,
                "multi_supplier_cart",
                f"cart spans suppliers {', '.join(suppliers)}; recording under {suppliers[0]}",
            )

        now = utc_now()
        completed = CompletedOrder(
            id=new_id(),
            supplier=suppliers[0],
            items=to_pending_lines(self.current_order),
            store_tags=cart_store_tags(self.current_order),
            payment_method=self.current_order_metadata.payment_method,
            completed_at=now,
            created_at=now,
        )
        self.completed_orders = [*self.completed_orders, completed]
        logger.info(f"Completed order {completed.id} for {completed.supplier} ({len(completed.items)} lines)")
        self.clear_order()
        return completed

    # ---- Pending orders ----

    def get_pending_order(self, order_id: str) -> Optional[PendingOrder]:
        return next((order for order in self.pending_orders if order.id == order_id), None)

    def open_orders(self) -> List[PendingOrder]:
        return [order for order in self.pending_orders if order.is_open()]

    def add_pending_order(self, draft: Union[PendingOrderDraft, Dict[str, Any]]) -> str:
        """
        Place an order, merging into the open order for the same supplier and store.

        Returns the id of the order that now holds the lines: the existing
        open order's id when merged, otherwise the new order's id.
        """
        if not isinstance(draft, PendingOrderDraft):
            draft = PendingOrderDraft.model_validate(draft)

        existing = find_open_order(self.pending_orders, draft.supplier, draft.store_tag)
        if existing is not None:
            merged = merge_order_lines(existing.items, draft.items)
            self.update_pending_order(existing.id, items=merged)
            logger.info(f"Merged {len(draft.items)} lines into open order {existing.id} for {draft.supplier}")
            return existing.id

        now = utc_now()
        order = PendingOrder.model_validate({
            **draft.model_dump(),
            "id": new_id(),
            "created_at": now,
            "updated_at": now,
        })
        self.pending_orders = [*self.pending_orders, order]
        self._schedule_sync("pending_orders")
        logger.info(f"Created pending order {order.id} for {order.supplier} ({order.store_tag or 'no store'})")
        return order.id

    def update_pending_order(self, order_id: str, **changes) -> Optional[PendingOrder]:
        """Partial update; updated_at is always re-stamped."""
        updated = None
        orders = []
        for order in self.pending_orders:
            if order.id == order_id:
                order = updated = _with_changes(order, {**changes, "updated_at": utc_now()})
            orders.append(order)
        if updated is None:
            return None
        self.pending_orders = orders
        self._schedule_sync("pending_orders")
        return updated

    def delete_pending_order(self, order_id: str) -> Optional[asyncio.Task]:
        self.pending_orders = [order for order in self.pending_orders if order.id != order_id]
        self._schedule_sync("pending_orders")
        return self._schedule_delete(PENDING_ORDERS, order_id)

    # ---- Import / export ----

    def export_data(self) -> DataSnapshot:
        return DataSnapshot(
            items=list(self.items),
            suppliers=list(self.suppliers),
            completed_orders=list(self.completed_orders),
            pending_orders=list(self.pending_orders),
            current_order=list(self.current_order),
            current_order_metadata=self.current_order_metadata,
        )

    def import_data(self, data: Union[DataSnapshot, Dict[str, Any]]) -> None:
        """Overwrite each collection present in ``data``; absent ones are left alone."""
        if not isinstance(data, DataSnapshot):
            data = DataSnapshot.model_validate(data)

        if data.items is not None:
            self.items = list(data.items)
            self._schedule_sync("items")
        if data.suppliers is not None:
            self.suppliers = list(data.suppliers)
            self._schedule_sync("suppliers")
        if data.completed_orders is not None:
            self.completed_orders = list(data.completed_orders)
        if data.pending_orders is not None:
            self.pending_orders = list(data.pending_orders)
            self._schedule_sync("pending_orders")
        if data.current_order is not None or data.current_order_metadata is not None:
            if data.current_order is not None:
                self.current_order = list(data.current_order)
            if data.current_order_metadata is not None:
                self.current_order_metadata = data.current_order_metadata
            self._schedule_sync("current_order")
