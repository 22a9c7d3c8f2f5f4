"""Delay between contended distributed lock attempts."""

from __future__ import annotations

import random


def lock_retry_delay(attempt: int) -> float:
    """Contention delay between lock attempts: ``100ms + 2^attempt * 50ms + U(0, 50ms)``."""
    return (100 + (2**attempt) * 50 + random.uniform(0, 50)) / 1000.0
