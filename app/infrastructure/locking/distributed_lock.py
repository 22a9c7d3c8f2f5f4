"""Cross-process mutual exclusion on top of the object store.

A lock is a small JSON object created with a create-if-absent write.
Holders that crash leave the entry behind; it becomes stale once its TTL
elapses and is then reclaimed by the next contender or by the sweeper.

Transient double ownership is possible when the store does not honour
the precondition; the read-back after every create narrows that window.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import ValidationError

from app.adapters.storage.errors import (
    ObjectNotFoundError,
    ObjectStoreError,
    PreconditionFailedError,
)
from app.core.backoff import lock_retry_delay
from app.domain.exceptions.domain_exceptions import LockError
from app.domain.models.collection import LockEntry

if TYPE_CHECKING:
    from app.adapters.storage.protocols import ObjectStore

logger = logging.getLogger(__name__)

MAX_ACQUIRE_ATTEMPTS = 3


def _now_ms() -> int:
    return int(time.time() * 1000)


def default_owner_id() -> str:
    return f"instance-{os.getpid()}-{_now_ms()}-{uuid.uuid4().hex[:6]}"


class DistributedLock:
    """Non-blocking TTL lock keyed by object store key.

    ``try_acquire`` and ``release`` never raise; store faults are logged and
    reported as ``False``.
    """

    def __init__(
        self,
        store: ObjectStore,
        owner_id: str | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self.owner_id = owner_id or default_owner_id()
        self._clock = clock
        self._held: dict[str, LockEntry] = {}

    def holds(self, key: str) -> bool:
        """Whether this instance believes it currently owns ``key``."""
        return key in self._held

    async def read_entry(self, key: str) -> LockEntry | None:
        """Return the stored entry, or None when there is none or it is unreadable.

        Raises:
            LockError: On store failures other than not-found.
        """
        try:
            raw = await self._store.get(key)
        except ObjectNotFoundError:
            return None
        except ObjectStoreError as exc:
            raise LockError(f"Failed to read lock {key}", details={"error": str(exc)}) from exc
        try:
            return LockEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning("lock_entry_corrupt", extra={"key": key})
            # a corrupt entry can never be released by its owner; treat as expired
            return LockEntry(owner_id="", acquired_at=0, ttl_ms=0)

    async def try_acquire(self, key: str, ttl_ms: int) -> bool:
        for attempt in range(MAX_ACQUIRE_ATTEMPTS):
            entry = LockEntry(owner_id=self.owner_id, acquired_at=self._clock(), ttl_ms=ttl_ms)
            try:
                await self._store.put(
                    key, entry.model_dump_json(by_alias=True).encode(), if_none_match=True
                )
            except PreconditionFailedError:
                try:
                    existing = await self.read_entry(key)
                except LockError as exc:
                    logger.warning("lock_read_failed", extra={"key": key, "error": str(exc)})
                    return False

                if existing is not None and not existing.is_stale(self._clock()):
                    logger.debug(
                        "lock_contended",
                        extra={"key": key, "holder": existing.owner_id, "attempt": attempt + 1},
                    )
                    return False

                if existing is not None:
                    logger.info(
                        "lock_stale_reclaiming",
                        extra={
                            "key": key,
                            "stale_owner": existing.owner_id,
                            "age_ms": self._clock() - existing.acquired_at,
                        },
                    )
                    await self.force_release(key)
                await asyncio.sleep(lock_retry_delay(attempt))
                continue
            except ObjectStoreError as exc:
                logger.warning("lock_acquire_failed", extra={"key": key, "error": str(exc)})
                return False

            try:
                verified = await self._verify_ownership(key, entry)
            except LockError as exc:
                # the create succeeded, so the entry is ours to remove
                logger.warning("lock_verify_failed", extra={"key": key, "error": str(exc)})
                await self.force_release(key)
                return False
            if verified:
                self._held[key] = entry
                logger.info(
                    "lock_acquired",
                    extra={"key": key, "owner": self.owner_id, "ttl_ms": ttl_ms},
                )
                return True
            return False

        logger.info("lock_acquire_exhausted", extra={"key": key, "attempts": MAX_ACQUIRE_ATTEMPTS})
        return False

    async def _verify_ownership(self, key: str, entry: LockEntry) -> bool:
        stored = await self.read_entry(key)
        if (
            stored is None
            or stored.owner_id != entry.owner_id
            or stored.acquired_at != entry.acquired_at
        ):
            logger.warning(
                "lock_ownership_mismatch",
                extra={
                    "key": key,
                    "owner": self.owner_id,
                    "stored_owner": stored.owner_id if stored else None,
                },
            )
            return False
        return True

    async def release(self, key: str) -> bool:
        """Delete the lock only if it is still ours."""
        self._held.pop(key, None)
        try:
            existing = await self.read_entry(key)
            if existing is None:
                return False
            if existing.owner_id != self.owner_id:
                logger.warning(
                    "lock_not_owned",
                    extra={
                        "key": key,
                        "expected_owner": self.owner_id,
                        "actual_owner": existing.owner_id,
                    },
                )
                return False
            await self._store.delete(key)
        except (LockError, ObjectStoreError) as exc:
            logger.warning("lock_release_failed", extra={"key": key, "error": str(exc)})
            return False
        logger.info("lock_released", extra={"key": key, "owner": self.owner_id})
        return True

    async def force_release(self, key: str) -> None:
        self._held.pop(key, None)
        try:
            await self._store.delete(key)
        except ObjectNotFoundError:
            return
        except ObjectStoreError as exc:
            logger.warning("lock_force_release_failed", extra={"key": key, "error": str(exc)})
            return
        logger.info("lock_force_released", extra={"key": key})

    async def reap_if_stale(self, key: str) -> bool:
        """Remove an expired entry left by a crashed holder. Returns True if reaped."""
        if self.holds(key):
            return False
        try:
            existing = await self.read_entry(key)
        except LockError as exc:
            logger.warning("lock_reap_read_failed", extra={"key": key, "error": str(exc)})
            return False
        if existing is None or not existing.is_stale(self._clock()):
            return False
        logger.info(
            "lock_reaping_stale",
            extra={"key": key, "stale_owner": existing.owner_id},
        )
        await self.force_release(key)
        return True
