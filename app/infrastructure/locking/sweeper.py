"""Periodic cleanup of stale refresh locks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from app.infrastructure.locking.distributed_lock import DistributedLock

logger = logging.getLogger(__name__)

JOB_ID = "stale_lock_sweep"


class LockSweeper:
    """Runs ``reap_if_stale`` on an interval using the event loop's scheduler.

    The job is skipped while this process holds the lock itself.
    """

    def __init__(
        self,
        lock: DistributedLock,
        key: str,
        interval_seconds: int = 120,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._lock = lock
        self._key = key
        self._interval_seconds = interval_seconds
        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._started = False

    async def start(self) -> None:
        """Start the sweep job. Must be called with the event loop running."""
        if self._started:
            logger.warning("lock_sweeper_already_started")
            return

        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            self.sweep,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=JOB_ID,
            name="Stale refresh lock sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if self._owns_scheduler:
            self._scheduler.start()
        self._started = True
        logger.info(
            "lock_sweeper_started",
            extra={"key": self._key, "interval_seconds": self._interval_seconds},
        )

    async def stop(self) -> None:
        if not self._started or self._scheduler is None:
            return
        if self._scheduler.get_job(JOB_ID):
            self._scheduler.remove_job(JOB_ID)
        if self._owns_scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self._started = False
        logger.info("lock_sweeper_stopped", extra={"key": self._key})

    async def sweep(self) -> bool:
        if self._lock.holds(self._key):
            logger.debug("lock_sweep_skipped_held", extra={"key": self._key})
            return False
        return await self._lock.reap_if_stale(self._key)

    def get_next_run_time(self) -> datetime | None:
        if not self._scheduler or not self._started:
            return None
        job = self._scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    @property
    def is_running(self) -> bool:
        return self._started
