"""Async helper utilities."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


def raise_if_cancelled(exc: BaseException) -> None:
    """Re-raise ``asyncio.CancelledError`` instances to preserve cancellation semantics."""

    if isinstance(exc, asyncio.CancelledError):  # pragma: no cover - simple guard
        raise exc


class SingleFlight(Generic[T]):
    """Coalesce concurrent calls into one in-flight task.

    While a call is running every other caller awaits the same task and
    receives the same result or exception. Once it settles the next call
    starts a fresh task.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[T] | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._task
        if task is None or task.done():
            task = asyncio.ensure_future(factory())
            self._task = task
            task.add_done_callback(self._clear)
        # shield: one cancelled waiter must not cancel the shared work
        return await asyncio.shield(task)

    def _clear(self, task: asyncio.Task[T]) -> None:
        if self._task is task:
            self._task = None
        if not task.cancelled():
            # mark retrieved so an unobserved failure is not reported twice
            task.exception()
