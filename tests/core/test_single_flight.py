"""Tests for SingleFlight request coalescing."""

from __future__ import annotations

import asyncio
import unittest

from app.core.async_utils import SingleFlight


class TestSingleFlight(unittest.IsolatedAsyncioTestCase):
    async def test_concurrent_callers_share_one_call(self) -> None:
        flight: SingleFlight[int] = SingleFlight()
        release = asyncio.Event()
        calls = 0

        async def work() -> int:
            nonlocal calls
            calls += 1
            await release.wait()
            return 42

        waiters = [asyncio.create_task(flight.run(work)) for _ in range(5)]
        await asyncio.sleep(0)
        self.assertTrue(flight.in_flight)

        release.set()
        results = await asyncio.gather(*waiters)

        self.assertEqual(results, [42] * 5)
        self.assertEqual(calls, 1)
        self.assertFalse(flight.in_flight)

    async def test_failure_is_shared_then_cleared(self) -> None:
        flight: SingleFlight[int] = SingleFlight()
        calls = 0

        async def boom() -> int:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            msg = "upstream down"
            raise RuntimeError(msg)

        results = await asyncio.gather(flight.run(boom), flight.run(boom), return_exceptions=True)

        self.assertEqual(calls, 1)
        self.assertTrue(all(isinstance(r, RuntimeError) for r in results))

        async def ok() -> int:
            return 1

        self.assertEqual(await flight.run(ok), 1)

    async def test_cancelled_waiter_does_not_cancel_shared_work(self) -> None:
        flight: SingleFlight[str] = SingleFlight()
        release = asyncio.Event()

        async def work() -> str:
            await release.wait()
            return "done"

        impatient = asyncio.create_task(flight.run(work))
        patient = asyncio.create_task(flight.run(work))
        await asyncio.sleep(0)

        impatient.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await impatient

        release.set()
        self.assertEqual(await patient, "done")
