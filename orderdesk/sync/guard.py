"""
Per-category in-flight guard for background syncs.

Each sync category (items, suppliers, pending orders, current order) owns one
guard. Only one push per category runs at a time; what happens to a request
that arrives while a push is running is decided by the overlap policy:

- ``drop``: the request is discarded and reported as ``skipped``.
- ``latest``: the request is parked in a single slot. A newer request
  supersedes the parked one. The parked request runs as soon as the
  in-flight push finishes.

Guards for different categories never coordinate.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

from pydantic import BaseModel

from orderdesk.utils.logging import setup_logging, log_sync_event


logger = setup_logging(__name__)


class OverlapPolicy(str, Enum):
    """What to do with a same-category request while one is in flight."""
    DROP = "drop"
    LATEST = "latest"


class SyncStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"
    QUEUED = "queued"
    SUPERSEDED = "superseded"


class SyncResult(BaseModel):
    """Outcome of one sync request."""
    category: str
    status: SyncStatus
    rows_written: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SyncStatus.OK


SyncJob = Callable[[], Awaitable[SyncResult]]


class SyncGuard:
    """Single in-flight slot for one sync category."""

    def __init__(self, category: str, policy: OverlapPolicy = OverlapPolicy.LATEST):
        self.category = category
        self.policy = OverlapPolicy(policy)
        self._running = False
        self._parked: Optional[Tuple[SyncJob, asyncio.Future]] = None

    @property
    def busy(self) -> bool:
        return self._running

    async def run(self, job: SyncJob) -> SyncResult:
        """
        Run ``job`` unless a push for this category is already in flight.

        Under the ``latest`` policy a parked caller waits for its own push and
        receives that push's result; a caller displaced by a newer request
        receives ``superseded``.
        """
        if self._running:
            if self.policy == OverlapPolicy.DROP:
                result = SyncResult(category=self.category, status=SyncStatus.SKIPPED)
                log_sync_event(logger, self.category, result.status.value)
                return result

            waiter = asyncio.get_running_loop().create_future()
            if self._parked is not None:
                _, displaced = self._parked
                if not displaced.done():
                    displaced.set_result(
                        SyncResult(category=self.category, status=SyncStatus.SUPERSEDED)
                    )
                log_sync_event(logger, self.category, SyncStatus.SUPERSEDED.value)
            self._parked = (job, waiter)
            log_sync_event(logger, self.category, SyncStatus.QUEUED.value)
            return await waiter

        self._running = True
        try:
            result = await job()
            while self._parked is not None:
                parked_job, waiter = self._parked
                self._parked = None
                try:
                    parked_result = await parked_job()
                except Exception as e:
                    # The parked caller gets its own failure; this caller's push succeeded
                    logger.error(f"Parked push for {self.category} failed: {e}")
                    if not waiter.done():
                        waiter.set_exception(e)
                    continue
                if not waiter.done():
                    waiter.set_result(parked_result)
            return result
        finally:
            self._running = False
            if self._parked is not None:
                _, waiter = self._parked
                self._parked = None
                if not waiter.done():
                    waiter.set_result(SyncResult(
                        category=self.category,
                        status=SyncStatus.FAILED,
                        error="in-flight push aborted before the parked push could run",
                    ))
