"""
Tests for SlotPool.
"""

import asyncio

import pytest

from mindnote.services.semaphore import SlotPool


class TestSlotPool:
    async def test_immediate_acquire(self):
        pool = SlotPool(2)
        await pool.acquire()
        assert pool.available == 1
        assert pool.in_flight == 1
        pool.release()
        assert pool.available == 2

    async def test_bound_and_fifo_order(self):
        """At most `capacity` holders at once, waiters served in arrival order."""
        pool = SlotPool(2)
        entered: list[int] = []
        active = 0
        peak = 0

        async def worker(i: int) -> None:
            nonlocal active, peak
            async with pool.slot():
                entered.append(i)
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                active -= 1

        await asyncio.gather(*(worker(i) for i in range(8)))

        assert peak == 2
        assert entered == list(range(8))
        assert pool.available == 2

    async def test_released_slot_goes_to_waiter_not_newcomer(self):
        pool = SlotPool(1)
        await pool.acquire()

        order: list[str] = []

        async def waiter(name: str) -> None:
            await pool.acquire()
            order.append(name)

        first = asyncio.create_task(waiter("first"))
        await asyncio.sleep(0)
        assert pool.waiting == 1

        pool.release()
        # The slot now belongs to "first" even before it runs
        assert pool.available == 0

        second = asyncio.create_task(waiter("second"))
        await first
        pool.release()
        await second

        assert order == ["first", "second"]
        pool.release()
        assert pool.available == 1

    async def test_release_on_error_path(self):
        pool = SlotPool(3)

        with pytest.raises(RuntimeError):
            async with pool.slot():
                raise RuntimeError("operation failed")

        assert pool.available == 3

    async def test_cancelled_waiter_leaves_queue(self):
        pool = SlotPool(1)
        await pool.acquire()

        task = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)
        assert pool.waiting == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        pool.release()
        assert pool.available == 1
        assert pool.waiting == 0

    async def test_cancel_after_handoff_returns_slot(self):
        pool = SlotPool(1)
        await pool.acquire()

        task = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)

        pool.release()  # hands the slot to the queued task
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pool.available == 1

    async def test_over_release_raises(self):
        pool = SlotPool(1)
        with pytest.raises(ValueError):
            pool.release()

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            SlotPool(0)
