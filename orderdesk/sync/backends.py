"""
Remote tabular storage backends.

Every operation returns a ``(data, error)`` pair in the style of the
PostgREST client: exactly one of the two is meaningful. Backends never raise
for remote failures; the sync adapter decides what an error means.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from orderdesk.utils import new_id
from orderdesk.utils.logging import setup_logging


logger = setup_logging(__name__)

Row = Dict[str, Any]
Result = Tuple[Optional[Any], Optional[Exception]]


class RemoteError(Exception):
    """A failure reported by the remote store."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class RemoteBackend(ABC):
    """Per-table select/upsert/insert/update/delete keyed by ``id``."""

    @abstractmethod
    def select(
        self,
        table: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> Result:
        """Return all rows of a table, optionally ordered and limited."""

    @abstractmethod
    def upsert(self, table: str, row: Row, on_conflict: str = "id") -> Result:
        """Insert the row or overwrite the row with the same key."""

    @abstractmethod
    def insert(self, table: str, row: Row) -> Result:
        """Insert a new row. The store assigns an id when none is given."""

    @abstractmethod
    def update(self, table: str, values: Row, match_id: Any) -> Result:
        """Overwrite the given columns of the row whose id is ``match_id``."""

    @abstractmethod
    def delete(self, table: str, match_id: Any) -> Result:
        """Remove the row whose id is ``match_id``."""


class InMemoryBackend(RemoteBackend):
    """
    Process-local stand-in for the remote store.

    Used for local development and tests. Supports fault injection through
    :meth:`fail` and simulated latency for exercising overlapping syncs.
    """

    def __init__(self, latency: float = 0.0):
        self.tables: Dict[str, Dict[Any, Row]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.latency = latency
        self._failures: Dict[Tuple[str, str], Tuple[int, str]] = {}
        self._lock = threading.Lock()

    def fail(self, table: str, operation: str, message: str = "simulated failure", after: int = 0) -> None:
        """Make ``operation`` on ``table`` fail once ``after`` calls have succeeded."""
        self._failures[(table, operation)] = (after, message)

    def clear_failures(self) -> None:
        self._failures.clear()

    def rows(self, table: str) -> List[Row]:
        """Current rows of a table in insertion order."""
        return list(self.tables.get(table, {}).values())

    def seed(self, table: str, rows: List[Row]) -> None:
        for row in rows:
            self.tables.setdefault(table, {})[row["id"]] = dict(row)

    def _check(self, table: str, operation: str) -> Optional[Exception]:
        if self.latency:
            time.sleep(self.latency)
        with self._lock:
            self.calls.append((table, operation))
            failure = self._failures.get((table, operation))
            if failure is None:
                return None
            remaining, message = failure
            if remaining > 0:
                self._failures[(table, operation)] = (remaining - 1, message)
                return None
        return RemoteError(f"{operation} on {table}: {message}")

    def select(self, table, order_by=None, descending=False, limit=None) -> Result:
        error = self._check(table, "select")
        if error:
            return None, error
        rows = [dict(row) for row in self.tables.get(table, {}).values()]
        if order_by:
            present = [row for row in rows if row.get(order_by) is not None]
            missing = [row for row in rows if row.get(order_by) is None]
            present.sort(key=lambda row: row[order_by], reverse=descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return rows, None

    def upsert(self, table, row, on_conflict="id") -> Result:
        error = self._check(table, "upsert")
        if error:
            return None, error
        with self._lock:
            stored = self.tables.setdefault(table, {})
            key = row[on_conflict]
            merged = {**stored.get(key, {}), **row}
            stored[key] = merged
        return [dict(merged)], None

    def insert(self, table, row) -> Result:
        error = self._check(table, "insert")
        if error:
            return None, error
        with self._lock:
            stored = self.tables.setdefault(table, {})
            new_row = {"id": new_id(), **row}
            if new_row["id"] in stored:
                return None, RemoteError(f"duplicate key {new_row['id']} in {table}", code="23505")
            stored[new_row["id"]] = new_row
        return [dict(new_row)], None

    def update(self, table, values, match_id) -> Result:
        error = self._check(table, "update")
        if error:
            return None, error
        with self._lock:
            stored = self.tables.setdefault(table, {})
            if match_id not in stored:
                return [], None
            stored[match_id] = {**stored[match_id], **values}
            return [dict(stored[match_id])], None

    def delete(self, table, match_id) -> Result:
        error = self._check(table, "delete")
        if error:
            return None, error
        with self._lock:
            removed = self.tables.setdefault(table, {}).pop(match_id, None)
        return ([removed] if removed else []), None


class SupabaseBackend(RemoteBackend):
    """Backend over a Supabase project through the ``supabase`` client."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_config(cls, config) -> "SupabaseBackend":
        """Create a client from SUPABASE_URL / SUPABASE_KEY."""
        logger.info(f"Connecting to Supabase project at {config.SUPABASE_URL}")
        return cls(create_client(config.SUPABASE_URL, config.SUPABASE_KEY))

    def _execute(self, query) -> Result:
        try:
            response = query.execute()
        except APIError as e:
            return None, RemoteError(e.message or str(e), code=e.code)
        except httpx.HTTPError as e:
            return None, RemoteError(f"Transport error: {e}")
        return response.data, None

    def select(self, table, order_by=None, descending=False, limit=None) -> Result:
        query = self.client.table(table).select("*")
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        return self._execute(query)

    def upsert(self, table, row, on_conflict="id") -> Result:
        return self._execute(self.client.table(table).upsert(row, on_conflict=on_conflict))

    def insert(self, table, row) -> Result:
        return self._execute(self.client.table(table).insert(row))

    def update(self, table, values, match_id) -> Result:
        return self._execute(self.client.table(table).update(values).eq("id", match_id))

    def delete(self, table, match_id) -> Result:
        return self._execute(self.client.table(table).delete().eq("id", match_id))


def build_backend(config) -> RemoteBackend:
    """Select the backend named by REMOTE_BACKEND."""
    if config.REMOTE_BACKEND == "supabase":
        return SupabaseBackend.from_config(config)
    return InMemoryBackend()
