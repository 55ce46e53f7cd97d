"""
Bounded concurrency for scenario execution.

Problem: launching every scenario of a parallel batch at once overloads the
system under test and makes fail-fast meaningless.

Solution: a counting semaphore sized to max_parallel, with stats that let
tests and progress reporters observe how many scenarios are in flight.

Usage:
    from volley.concurrency import ConcurrencyLimiter

    limiter = ConcurrencyLimiter(max_concurrent=4)
    async with limiter.acquire():
        await run_scenario(...)

    print(limiter.stats().peak_active)
"""
from __future__ import annotations

import asyncio
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional


@dataclass
class ConcurrencyStats:
    """Snapshot of concurrency limiter state."""
    max_concurrent: int
    active: int
    waiting: int
    peak_active: int
    total_acquired: int
    total_rejected: int


class ConcurrencyLimiter:
    """
    Concurrency limiter for asyncio tasks.

    Design:
    - One limiter per batch; no process-wide instance
    - Semaphore created lazily per event loop, so the limiter can be built
      before the loop that uses it
    - Stats guarded by a lock so they can be read from any thread
    """

    def __init__(self, max_concurrent: int) -> None:
        """
        Args:
            max_concurrent: Maximum simultaneous holders of a slot.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")

        self._max_concurrent = max_concurrent

        self._semaphores: Dict[int, asyncio.Semaphore] = {}
        self._semaphores_lock = threading.Lock()

        self._stats_lock = threading.Lock()
        self._active = 0
        self._waiting = 0
        self._peak_active = 0
        self._total_acquired = 0
        self._total_rejected = 0

    @asynccontextmanager
    async def acquire(self, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """
        Hold one of the max_concurrent slots while the block runs.

        Raises:
            TimeoutError: No slot freed up within `timeout` seconds.
        """
        slots = self._semaphore_for_loop()
        await self._wait_for_slot(slots, timeout)
        try:
            yield
        finally:
            slots.release()
            with self._stats_lock:
                self._active -= 1

    async def _wait_for_slot(self, slots: asyncio.Semaphore, timeout: Optional[float]) -> None:
        with self._stats_lock:
            self._waiting += 1
        admitted = False
        try:
            await asyncio.wait_for(slots.acquire(), timeout=timeout)
            admitted = True
        except asyncio.TimeoutError:
            with self._stats_lock:
                self._total_rejected += 1
            raise TimeoutError(f"no concurrency slot free after {timeout}s") from None
        finally:
            with self._stats_lock:
                self._waiting -= 1
                if admitted:
                    self._active += 1
                    self._total_acquired += 1
                    self._peak_active = max(self._peak_active, self._active)

    def _semaphore_for_loop(self) -> asyncio.Semaphore:
        loop_id = id(asyncio.get_running_loop())
        with self._semaphores_lock:
            slots = self._semaphores.get(loop_id)
            if slots is None:
                slots = self._semaphores[loop_id] = asyncio.Semaphore(self._max_concurrent)
            return slots

    def stats(self) -> ConcurrencyStats:
        """Current limiter state for monitoring."""
        with self._stats_lock:
            return ConcurrencyStats(
                max_concurrent=self._max_concurrent,
                active=self._active,
                waiting=self._waiting,
                peak_active=self._peak_active,
                total_acquired=self._total_acquired,
                total_rejected=self._total_rejected,
            )

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent
