"""Background queue for preview-image uploads.

Uploads enqueued here are processed sequentially by a dedicated asyncio
worker task owned by the engine, so a refresh can return before its images
are copied. ``enqueue`` blocks while the queue is full.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from app.services.enrichment.image_persistence import ImagePersistenceError

if TYPE_CHECKING:
    from app.domain.models.bookmark import Bookmark
    from app.services.enrichment.image_persistence import ImagePersister
    from app.services.enrichment.image_selection import ImageCandidate

logger = logging.getLogger(__name__)

# Sentinel used to signal the worker to shut down.
_SENTINEL = None


@dataclass(frozen=True)
class ImageJob:
    bookmark: Bookmark
    candidate: ImageCandidate
    correlation_id: str = ""


@dataclass
class QueueStats:
    processed: int = 0
    uploaded: int = 0
    already_present: int = 0
    failed: int = 0


class ImagePersistenceQueue:
    """Sequentially persists images in a background asyncio task.

    Usage::

        queue = ImagePersistenceQueue(persister, maxsize=256)
        queue.start()
        await queue.enqueue(ImageJob(bookmark, candidate))
        await queue.stop(timeout=30.0)
    """

    def __init__(self, persister: ImagePersister, maxsize: int = 256) -> None:
        self._persister = persister
        self._queue: asyncio.Queue[ImageJob | None] = asyncio.Queue(maxsize=maxsize)
        self._worker_task: asyncio.Task[None] | None = None
        self.stats = QueueStats()

    @property
    def running(self) -> bool:
        return self._worker_task is not None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Spawn the background worker. Must be called with the event loop running."""
        if self._worker_task is not None:
            logger.warning("image_queue_already_running")
            return
        self._worker_task = asyncio.create_task(self._worker(), name="image-persistence-worker")
        logger.info("image_queue_started", extra={"maxsize": self._queue.maxsize})

    async def stop(self, timeout: float = 30.0) -> None:
        """Signal shutdown and wait for the worker to drain remaining jobs."""
        if self._worker_task is None:
            return

        await self._queue.put(_SENTINEL)

        try:
            await asyncio.wait_for(self._worker_task, timeout=timeout)
        except TimeoutError:
            logger.warning("image_queue_stop_timeout", extra={"timeout": timeout})
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        finally:
            self._worker_task = None
            logger.info(
                "image_queue_stopped",
                extra={
                    "processed": self.stats.processed,
                    "uploaded": self.stats.uploaded,
                    "failed": self.stats.failed,
                },
            )

    async def join(self) -> None:
        """Wait until every job enqueued so far has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enqueue(self, job: ImageJob) -> None:
        if self._worker_task is None:
            msg = "ImagePersistenceQueue is not running"
            raise RuntimeError(msg)
        await self._queue.put(job)
        logger.debug(
            "image_job_enqueued",
            extra={
                "bookmark_id": job.bookmark.id,
                "cid": job.correlation_id,
                "pending": self._queue.qsize(),
            },
        )

    # ------------------------------------------------------------------
    # Internal worker
    # ------------------------------------------------------------------

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            if job is _SENTINEL:
                await self._drain()
                self._queue.task_done()
                break
            await self._process(job)
            self._queue.task_done()

    async def _drain(self) -> None:
        drained = 0
        while not self._queue.empty():
            job = self._queue.get_nowait()
            if job is not _SENTINEL:
                await self._process(job)
                drained += 1
            self._queue.task_done()
        if drained:
            logger.info("image_queue_drained", extra={"drained": drained})

    async def _process(self, job: ImageJob) -> None:
        self.stats.processed += 1
        try:
            persisted = await self._persister.persist(job.bookmark, job.candidate)
        except ImagePersistenceError as exc:
            self.stats.failed += 1
            logger.warning(
                "image_job_failed",
                extra={"bookmark_id": job.bookmark.id, "cid": job.correlation_id, "error": str(exc)},
            )
            return
        if persisted.newly_written:
            self.stats.uploaded += 1
        else:
            self.stats.already_present += 1
