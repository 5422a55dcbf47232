"""
Rate Budget - shared minimum spacing between outbound API calls

One instance is shared by every tier and collector of an engine. Each call
attempt reserves the next free dispatch slot under a single lock and then
sleeps outside the lock until that slot, so concurrent callers queue in
reservation order and a cancelled waiter never holds the lock.
"""

import asyncio
import threading
import time
from collections.abc import Callable
from typing import Any


class RateBudget:
    """
    Minimum-interval budget for one API credential.

    Args:
        min_interval: Minimum seconds between two dispatches
        clock: Monotonic time source (seconds)
    """

    def __init__(self, min_interval: float = 1.1, clock: Callable[[], float] = time.monotonic):
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._clock = clock
        self._last_call: float | None = None
        self._lock = threading.Lock()

        # Statistics
        self.total_reservations = 0
        self.total_delayed = 0
        self.total_wait_seconds = 0.0
        self.max_wait_seconds = 0.0

    @property
    def last_call(self) -> float | None:
        """Dispatch slot granted to the most recent reservation."""
        with self._lock:
            return self._last_call

    def reserve(self) -> float:
        """
        Claim the next dispatch slot.

        Returns:
            Seconds the caller must wait before dispatching (0 if none)
        """
        with self._lock:
            now = self._clock()
            if self._last_call is None:
                slot = now
            else:
                slot = max(now, self._last_call + self.min_interval)
            self._last_call = slot

            wait = slot - now
            self.total_reservations += 1
            if wait > 0:
                self.total_delayed += 1
                self.total_wait_seconds += wait
                self.max_wait_seconds = max(self.max_wait_seconds, wait)
            return wait

    async def acquire(self) -> float:
        """Reserve a slot and sleep until it arrives. Returns the wait."""
        wait = self.reserve()
        if wait > 0:
            await asyncio.sleep(wait)
        return wait

    def get_stats(self) -> dict[str, Any]:
        """Get rate budget statistics"""
        with self._lock:
            return {
                "min_interval": self.min_interval,
                "total_reservations": self.total_reservations,
                "total_delayed": self.total_delayed,
                "total_wait_seconds": round(self.total_wait_seconds, 3),
                "max_wait_seconds": round(self.max_wait_seconds, 3),
                "avg_wait_seconds": (self.total_wait_seconds / self.total_delayed)
                if self.total_delayed > 0
                else 0.0,
            }
