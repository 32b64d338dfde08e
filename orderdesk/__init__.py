"""
Order Desk: inventory and supplier ordering with remote sync
"""

__version__ = "1.0.0"
__description__ = "Items, suppliers, cart and pending orders mirrored to a remote tabular store"

from orderdesk.main import build_store, open_store
from orderdesk.state import AppStore, LoadState
from orderdesk.schemas.snapshot import DataSnapshot

__all__ = [
    "build_store",
    "open_store",
    "AppStore",
    "LoadState",
    "DataSnapshot",
]
