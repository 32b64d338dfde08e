"""
Optional FastAPI REST surface over the application store.
Can be run with: uvicorn orderdesk.api:app --reload
"""

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_snake

from orderdesk.config import get_config
from orderdesk.main import open_store
from orderdesk.schemas.orders import PendingOrderDraft
from orderdesk.state import AppStore
from orderdesk.sync.adapter import RemoteStoreError
from orderdesk.utils.logging import setup_logging


logger = setup_logging(__name__)
config = get_config()


class CartLineRequest(BaseModel):
    item_id: str
    quantity: float = Field(gt=0)
    store_tag: Optional[str] = None


def _changes(body: Dict[str, Any]) -> Dict[str, Any]:
    """Accept camelCase or snake_case keys in partial updates."""
    return {to_snake(key): value for key, value in body.items()}


def create_app(store_factory: Callable[[], Awaitable[AppStore]] = open_store) -> FastAPI:
    """Build the API around a store produced by ``store_factory``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store = await store_factory()
        yield
        await app.state.store.flush()

    app = FastAPI(
        title="Order Desk API",
        description="Items, suppliers, cart and pending orders with remote sync",
        version="1.0.0",
        lifespan=lifespan,
    )

    def store_of(request: Request) -> AppStore:
        return request.app.state.store

    async def await_remote_delete(task) -> None:
        if task is None:
            return
        try:
            await task
        except RemoteStoreError as e:
            raise HTTPException(
                status_code=502,
                detail=f"Removed locally but remote delete failed: {e}",
            )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=422, content={"error": str(exc)})

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        return {"status": "healthy", "version": "1.0.0", "load_state": store_of(request).load_state.value}

    @app.get("/config")
    async def get_config_endpoint():
        """Get current configuration (sanitized)."""
        return {
            "remote_backend": config.REMOTE_BACKEND,
            "sync_overlap_policy": config.SYNC_OVERLAP_POLICY,
            "default_payment_method": config.DEFAULT_PAYMENT_METHOD,
        }

    @app.get("/sync")
    async def sync_status(request: Request):
        return store_of(request).last_sync_results

    # ---- Catalog ----

    @app.get("/items")
    async def list_items(request: Request):
        return store_of(request).items

    @app.post("/items", status_code=201)
    async def add_item(request: Request, body: Dict[str, Any] = Body(...), custom_id: Optional[str] = None):
        return store_of(request).add_item(body, custom_id=custom_id)

    @app.patch("/items/{item_id}")
    async def update_item(item_id: str, request: Request, body: Dict[str, Any] = Body(...)):
        item = store_of(request).update_item(item_id, **_changes(body))
        if item is None:
            raise HTTPException(status_code=404, detail=f"Item {item_id} not found")
        return item

    @app.delete("/items/{item_id}", status_code=204)
    async def delete_item(item_id: str, request: Request):
        await await_remote_delete(store_of(request).delete_item(item_id))

    @app.get("/suppliers")
    async def list_suppliers(request: Request):
        return store_of(request).suppliers

    @app.post("/suppliers", status_code=201)
    async def add_supplier(request: Request, body: Dict[str, Any] = Body(...)):
        return store_of(request).add_supplier(body)

    @app.patch("/suppliers/{supplier_id}")
    async def update_supplier(supplier_id: str, request: Request, body: Dict[str, Any] = Body(...)):
        supplier = store_of(request).update_supplier(supplier_id, **_changes(body))
        if supplier is None:
            raise HTTPException(status_code=404, detail=f"Supplier {supplier_id} not found")
        return supplier

    @app.delete("/suppliers/{supplier_id}", status_code=204)
    async def delete_supplier(supplier_id: str, request: Request):
        await await_remote_delete(store_of(request).delete_supplier(supplier_id))

    @app.get("/stores")
    async def list_stores(request: Request):
        return store_of(request).stores

    # ---- Cart ----

    @app.get("/cart")
    async def get_cart(request: Request):
        store = store_of(request)
        return {"items": store.current_order, "metadata": store.current_order_metadata}

    @app.post("/cart/lines")
    async def add_to_cart(line: CartLineRequest, request: Request):
        store = store_of(request)
        item = store.get_item(line.item_id)
        if item is None:
            raise HTTPException(status_code=404, detail=f"Item {line.item_id} not found")
        store.add_to_order(item, line.quantity, line.store_tag)
        return {"items": store.current_order, "metadata": store.current_order_metadata}

    @app.put("/cart/lines")
    async def update_cart_line(line: CartLineRequest, request: Request):
        store = store_of(request)
        store.update_order_item(line.item_id, line.quantity, line.store_tag)
        return {"items": store.current_order, "metadata": store.current_order_metadata}

    @app.delete("/cart/lines/{item_id}")
    async def remove_cart_line(item_id: str, request: Request, store_tag: Optional[str] = None):
        store = store_of(request)
        store.remove_from_order(item_id, store_tag)
        return {"items": store.current_order, "metadata": store.current_order_metadata}

    @app.patch("/cart/metadata")
    async def update_cart_metadata(request: Request, body: Dict[str, Any] = Body(...)):
        return store_of(request).update_order_metadata(**_changes(body))

    @app.delete("/cart", status_code=204)
    async def clear_cart(request: Request):
        store_of(request).clear_order()

    @app.post("/cart/complete")
    async def complete_cart(request: Request):
        completed = store_of(request).complete_order()
        if completed is None:
            raise HTTPException(status_code=409, detail="Cart is empty")
        return completed

    # ---- Orders ----

    @app.get("/pending-orders")
    async def list_pending_orders(request: Request, open_only: bool = False):
        store = store_of(request)
        return store.open_orders() if open_only else store.pending_orders

    @app.post("/pending-orders", status_code=201)
    async def add_pending_order(draft: PendingOrderDraft, request: Request):
        return {"id": store_of(request).add_pending_order(draft)}

    @app.patch("/pending-orders/{order_id}")
    async def update_pending_order(order_id: str, request: Request, body: Dict[str, Any] = Body(...)):
        order = store_of(request).update_pending_order(order_id, **_changes(body))
        if order is None:
            raise HTTPException(status_code=404, detail=f"Pending order {order_id} not found")
        return order

    @app.delete("/pending-orders/{order_id}", status_code=204)
    async def delete_pending_order(order_id: str, request: Request):
        await await_remote_delete(store_of(request).delete_pending_order(order_id))

    @app.get("/completed-orders")
    async def list_completed_orders(request: Request):
        return store_of(request).completed_orders

    # ---- Snapshot ----

    @app.get("/export")
    async def export_data(request: Request):
        return store_of(request).export_data().to_document()

    @app.post("/import", status_code=204)
    async def import_data(request: Request, body: Dict[str, Any] = Body(...)):
        store_of(request).import_data(body)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=config.API_HOST,
        port=config.API_PORT,
        log_level=config.LOG_LEVEL.lower(),
    )
