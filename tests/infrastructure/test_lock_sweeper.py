"""Tests for the periodic stale-lock sweep."""

from __future__ import annotations

import unittest

from app.infrastructure.locking.distributed_lock import DistributedLock
from app.infrastructure.locking.sweeper import LockSweeper
from tests.fakes import InMemoryObjectStore

KEY = "json/bookmarks/refresh-lock-test.json"


class TestLockSweeper(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.now = 1_000_000
        self.store = InMemoryObjectStore()
        self.lock = DistributedLock(self.store, owner_id="me", clock=lambda: self.now)
        self.sweeper = LockSweeper(self.lock, KEY, interval_seconds=60)

    async def asyncTearDown(self) -> None:
        await self.sweeper.stop()

    async def test_sweep_removes_expired_entry(self) -> None:
        self.store.put_json(KEY, {"ownerId": "crashed", "acquiredAt": 0, "ttlMs": 1_000})

        self.assertTrue(await self.sweeper.sweep())
        self.assertNotIn(KEY, self.store.objects)

    async def test_sweep_keeps_fresh_entry(self) -> None:
        self.store.put_json(KEY, {"ownerId": "busy", "acquiredAt": self.now, "ttlMs": 1_000})

        self.assertFalse(await self.sweeper.sweep())
        self.assertIn(KEY, self.store.objects)

    async def test_sweep_skipped_while_holding_lock(self) -> None:
        self.assertTrue(await self.lock.try_acquire(KEY, 1_000))
        self.now += 10_000

        self.assertFalse(await self.sweeper.sweep())
        self.assertIn(KEY, self.store.objects)

    async def test_start_schedules_job_and_stop_cancels_it(self) -> None:
        self.assertIsNone(self.sweeper.get_next_run_time())

        await self.sweeper.start()
        self.assertTrue(self.sweeper.is_running)
        self.assertIsNotNone(self.sweeper.get_next_run_time())

        await self.sweeper.stop()
        self.assertFalse(self.sweeper.is_running)
        self.assertIsNone(self.sweeper.get_next_run_time())

    async def test_double_start_is_harmless(self) -> None:
        await self.sweeper.start()
        await self.sweeper.start()
        self.assertTrue(self.sweeper.is_running)
