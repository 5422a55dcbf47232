"""
Tests for RateBudget - shared minimum spacing between dispatches
"""

import asyncio
import time

import pytest

from sources.rate_budget import RateBudget


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestReservation:
    """Slot reservation arithmetic, driven by a fake clock"""

    def test_first_reservation_does_not_wait(self):
        budget = RateBudget(1.1, clock=FakeClock())
        assert budget.reserve() == 0.0

    def test_back_to_back_reservations_queue_behind_each_other(self):
        clock = FakeClock()
        budget = RateBudget(1.1, clock=clock)

        waits = [budget.reserve() for _ in range(4)]

        assert waits == pytest.approx([0.0, 1.1, 2.2, 3.3])
        assert budget.last_call == pytest.approx(100.0 + 3.3)

    def test_no_wait_once_interval_has_passed(self):
        clock = FakeClock()
        budget = RateBudget(1.0, clock=clock)
        budget.reserve()

        clock.now += 5.0
        assert budget.reserve() == 0.0

    def test_partial_wait_when_interval_partly_elapsed(self):
        clock = FakeClock()
        budget = RateBudget(1.0, clock=clock)
        budget.reserve()

        clock.now += 0.4
        assert budget.reserve() == pytest.approx(0.6)

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            RateBudget(-1.0)

    def test_stats_track_delays(self):
        budget = RateBudget(0.5, clock=FakeClock())
        budget.reserve()
        budget.reserve()
        budget.reserve()

        stats = budget.get_stats()
        assert stats["total_reservations"] == 3
        assert stats["total_delayed"] == 2
        assert stats["max_wait_seconds"] == pytest.approx(1.0)
        assert stats["avg_wait_seconds"] == pytest.approx(0.75)


class TestAcquire:
    """Real sleeping through acquire()"""

    @pytest.mark.asyncio
    async def test_concurrent_acquires_are_spaced(self):
        budget = RateBudget(0.05)
        dispatched: list[float] = []

        async def caller():
            await budget.acquire()
            dispatched.append(time.monotonic())

        await asyncio.gather(*(caller() for _ in range(5)))

        dispatched.sort()
        gaps = [b - a for a, b in zip(dispatched, dispatched[1:])]
        assert all(gap >= 0.05 - 0.005 for gap in gaps)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_block_others(self):
        budget = RateBudget(0.05)
        await budget.acquire()

        waiter = asyncio.create_task(budget.acquire())
        await asyncio.sleep(0.01)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        # Lock is free: a new reservation is granted immediately (it may still wait)
        started = time.monotonic()
        await asyncio.wait_for(budget.acquire(), timeout=1.0)
        assert time.monotonic() - started < 0.5
