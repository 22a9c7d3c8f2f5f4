"""Tests for the lock contention delay."""

from __future__ import annotations

from app.core.backoff import lock_retry_delay


def test_lock_retry_delay_grows_with_attempts() -> None:
    for attempt in range(4):
        base = (100 + (2**attempt) * 50) / 1000.0
        delay = lock_retry_delay(attempt)
        assert base <= delay <= base + 0.05
