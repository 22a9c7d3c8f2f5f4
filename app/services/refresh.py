"""Refresh orchestration: lock, fetch, validate, detect change, enrich, persist.

Only one process in the fleet refreshes at a time (distributed lock) and
only one refresh runs per process at a time (single-flight). When anything
goes wrong the last persisted manifest is served instead, as long as one
exists.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from app.core.async_utils import SingleFlight, raise_if_cancelled
from app.core.logging_utils import generate_correlation_id
from app.domain.exceptions.domain_exceptions import PersistenceError
from app.domain.models.collection import RefreshHeartbeat
from app.domain.services.checksum import fingerprint, has_changed
from app.domain.services.dataset_validator import DatasetValidator
from app.domain.services.slug_generator import apply_slugs, build_slug_mapping

if TYPE_CHECKING:
    from app.adapters.karakeep.source import BookmarkSource
    from app.domain.models.bookmark import Bookmark
    from app.infrastructure.locking.distributed_lock import DistributedLock
    from app.infrastructure.persistence.object_store.bookmark_store import BookmarkStore
    from app.services.enrichment.pipeline import EnrichmentPipeline

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE = "idle"
    LOCK_PENDING = "lock_pending"
    FETCHING = "fetching"
    CHANGE_CHECK = "change_check"
    ENRICHING = "enriching"
    PERSISTING = "persisting"


class RefreshOrchestrator:
    """Runs one refresh cycle end to end."""

    def __init__(
        self,
        source: BookmarkSource,
        store: BookmarkStore,
        lock: DistributedLock,
        pipeline: EnrichmentPipeline,
        *,
        lock_ttl_ms: int = 300_000,
        force_refresh_enabled: bool = True,
        on_persisted: Callable[[], None] | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._lock = lock
        self._pipeline = pipeline
        self._lock_key = store.keys.refresh_lock
        self._lock_ttl_ms = lock_ttl_ms
        self._force_refresh_enabled = force_refresh_enabled
        self._on_persisted = on_persisted
        self._flight: SingleFlight[list[Bookmark] | None] = SingleFlight()
        self.state = RefreshState.IDLE

    @property
    def lock_key(self) -> str:
        return self._lock_key

    @property
    def in_progress(self) -> bool:
        return self._flight.in_flight

    async def refresh_and_persist(self, force: bool = False) -> list[Bookmark] | None:
        """Refresh from upstream and persist.

        Returns:
            The current collection; None when another process (or an earlier
            call in this one) holds the refresh lock.

        Raises:
            BookmarkEngineError: Only when the refresh fails and no persisted
                manifest exists to fall back to.
        """
        if not self._flight.in_flight and self._lock.holds(self._lock_key):
            logger.info("refresh_skipped_lock_held_locally", extra={"key": self._lock_key})
            return None
        return await self._flight.run(lambda: self._run(force))

    async def _run(self, force: bool) -> list[Bookmark] | None:
        cid = generate_correlation_id()
        started = time.perf_counter()
        self.state = RefreshState.LOCK_PENDING

        if not await self._lock.try_acquire(self._lock_key, self._lock_ttl_ms):
            self.state = RefreshState.IDLE
            logger.info("refresh_lock_unavailable", extra={"cid": cid, "key": self._lock_key})
            return None

        try:
            result = await self._refresh_locked(force, cid)
            logger.info(
                "refresh_complete",
                extra={
                    "cid": cid,
                    "count": len(result),
                    "duration_ms": int((time.perf_counter() - started) * 1000),
                },
            )
            return result
        except Exception as exc:
            raise_if_cancelled(exc)
            return await self._fall_back(exc, cid)
        finally:
            self.state = RefreshState.IDLE
            await self._lock.release(self._lock_key)

    async def _refresh_locked(self, force: bool, cid: str) -> list[Bookmark]:
        self.state = RefreshState.FETCHING
        fetched = await self._source.fetch_all()
        manifest = await self._store.read_manifest()
        previous_index = await self._store.read_index()

        DatasetValidator.validate(
            fetched, previous_count=len(manifest) if manifest is not None else None
        )

        self.state = RefreshState.CHANGE_CHECK
        checksum = fingerprint(fetched)
        bypass = force and self._force_refresh_enabled
        if force and not self._force_refresh_enabled:
            logger.info("refresh_force_ignored", extra={"cid": cid})

        if (
            not bypass
            and manifest is not None
            and previous_index is not None
            and not has_changed(checksum, len(fetched), previous_index)
        ):
            await self._store.touch_index(previous_index)
            await self._record_heartbeat(RefreshHeartbeat(success=True, change_detected=False))
            logger.info("refresh_unchanged", extra={"cid": cid, "count": len(manifest)})
            return manifest

        self.state = RefreshState.ENRICHING
        enriched = await self._pipeline.enrich(fetched, manifest, correlation_id=cid)

        self.state = RefreshState.PERSISTING
        mapping = build_slug_mapping(enriched)
        enriched = apply_slugs(enriched, mapping)
        await self._store.write_manifest(enriched)
        await self._store.write_slug_mapping(mapping)
        index = await self._store.write_collection(
            enriched, checksum=checksum, change_detected=True, commit=False
        )
        await self._store.write_tag_collections(enriched)
        # until this lands a later refresh sees the collection as changed
        await self._store.commit_index(index)

        if self._on_persisted is not None:
            self._on_persisted()
        await self._record_heartbeat(RefreshHeartbeat(success=True, change_detected=True))
        logger.info(
            "refresh_persisted",
            extra={"cid": cid, "count": len(enriched), "forced": bypass},
        )
        return enriched

    async def _fall_back(self, exc: Exception, cid: str) -> list[Bookmark]:
        fallback = await self._store.read_manifest()
        await self._record_heartbeat(
            RefreshHeartbeat(success=False, used_fallback=fallback is not None, error=str(exc))
        )
        if fallback is None:
            logger.error(
                "refresh_failed_no_fallback",
                extra={"cid": cid, "error": str(exc), "error_type": type(exc).__name__},
            )
            raise exc
        logger.warning(
            "refresh_failed_serving_fallback",
            extra={
                "cid": cid,
                "error": str(exc),
                "error_type": type(exc).__name__,
                "count": len(fallback),
            },
        )
        return fallback

    async def _record_heartbeat(self, heartbeat: RefreshHeartbeat) -> None:
        try:
            await self._store.write_heartbeat(heartbeat)
        except PersistenceError as exc:
            logger.warning("refresh_heartbeat_write_failed", extra={"error": str(exc)})
