"""
SlotPool - FIFO counting semaphore for bounding in-flight coroutines.

Invariant: available + in_flight == capacity. A released slot is handed
directly to the oldest waiter, so a newcomer can never overtake a queued
coroutine.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator


class SlotPool:
    """
    Admission control for concurrent operations.

    Usage:
        pool = SlotPool(5)

        async with pool.slot():
            await do_work()
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("SlotPool capacity must be at least 1")
        self._capacity = capacity
        self._available = capacity
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def available(self) -> int:
        return self._available

    @property
    def in_flight(self) -> int:
        return self._capacity - self._available

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        """Take a slot, suspending until one is handed over if none is free."""
        if self._available > 0 and not self._waiters:
            self._available -= 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over before the cancellation landed
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        """Return a slot, waking the oldest live waiter if there is one."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return

        if self._available >= self._capacity:
            raise ValueError("SlotPool released more times than acquired")
        self._available += 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one slot for the duration of the block."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()
