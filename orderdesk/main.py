"""
Main entry point for the ordering desk.
"""

import asyncio
import json
import sys
from typing import Optional

from orderdesk.config import Config, get_config
from orderdesk.defaults import load_default_data
from orderdesk.schemas.snapshot import DataSnapshot
from orderdesk.state import AppStore
from orderdesk.sync.adapter import RemoteSyncAdapter
from orderdesk.sync.backends import RemoteBackend, build_backend
from orderdesk.sync.guard import OverlapPolicy
from orderdesk.utils import dict_to_json_string
from orderdesk.utils.logging import setup_logging


logger = setup_logging(__name__)
config = get_config()


def build_store(cfg: Optional[Config] = None, backend: Optional[RemoteBackend] = None) -> AppStore:
    """Wire a store to its sync adapter and backend. The store is not loaded yet."""
    cfg = cfg or config
    backend = backend or build_backend(cfg)
    adapter = RemoteSyncAdapter(backend, OverlapPolicy(cfg.SYNC_OVERLAP_POLICY))
    return AppStore(adapter, default_data_loader=lambda: load_default_data(cfg.DEFAULT_DATA_PATH))


async def open_store(cfg: Optional[Config] = None, backend: Optional[RemoteBackend] = None) -> AppStore:
    """Build a store and run its initial load."""
    store = build_store(cfg, backend)
    await store.load()
    return store


def read_snapshot(path: str) -> DataSnapshot:
    """Read an exported snapshot file."""
    with open(path, 'r', encoding='utf-8') as f:
        return DataSnapshot.model_validate(json.load(f))


def write_snapshot(snapshot: DataSnapshot, path: str) -> None:
    """Write a snapshot file with camelCase keys."""
    with open(path, 'w', encoding='utf-8') as f:
        f.write(dict_to_json_string(snapshot.to_document()))


def warn_if_ephemeral(cfg: Optional[Config] = None) -> bool:
    """Warn that the memory backend starts empty and is discarded on exit."""
    cfg = cfg or config
    if cfg.REMOTE_BACKEND != "memory":
        return False
    logger.warning(
        "REMOTE_BACKEND is 'memory': data starts from the bundled defaults and is lost "
        "when this process exits. Set REMOTE_BACKEND=supabase to work on remote storage."
    )
    return True


async def export_to_file(path: str) -> DataSnapshot:
    warn_if_ephemeral()
    store = await open_store()
    snapshot = store.export_data()
    write_snapshot(snapshot, path)
    await store.flush()
    logger.info(f"Exported {len(snapshot.items)} items and {len(snapshot.pending_orders)} pending orders to {path}")
    return snapshot


async def import_from_file(path: str) -> AppStore:
    warn_if_ephemeral()
    store = await open_store()
    store.import_data(read_snapshot(path))
    results = await store.flush()

    failed = [result for result in results.values() if not result.ok]
    for result in failed:
        logger.error(f"Import sync of {result.category} ended {result.status.value}: {result.error}")
    logger.info(f"Import from {path} complete ({len(failed)} categories not synced)")
    return store


async def seed_remote() -> AppStore:
    """Load the store; an empty remote store is seeded with the default dataset."""
    warn_if_ephemeral()
    store = await open_store()
    results = await store.flush()
    for category, result in sorted(results.items()):
        print(f"{category}: {result.status.value} ({result.rows_written} rows)")
    return store


if __name__ == "__main__":
    if len(sys.argv) > 2 and sys.argv[1] == "export":
        asyncio.run(export_to_file(sys.argv[2]))
    elif len(sys.argv) > 2 and sys.argv[1] == "import":
        asyncio.run(import_from_file(sys.argv[2]))
    elif len(sys.argv) > 1 and sys.argv[1] == "seed":
        asyncio.run(seed_remote())
    else:
        print("Usage: python -m orderdesk.main export <file> | import <file> | seed")
