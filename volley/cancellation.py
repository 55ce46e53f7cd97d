"""
Explicit cooperative cancellation shared by every task of a run.

A single CancellationToken is handed to the executor or load generator and
checked at every admission point and suspension point. Cancelling never
interrupts a unit of work that is already running; it stops new work from
starting and wakes up sleeping tasks (backoff, start delays, think time).

Usage:
    from volley.cancellation import CancellationToken

    token = CancellationToken()
    generator = LoadGenerator(config, token=token)
    # from another task, thread or signal handler:
    token.cancel()
"""
from __future__ import annotations

import asyncio
import threading
from typing import Dict, Optional, Tuple


class CancellationToken:
    """
    Thread-safe cancellation flag with awaitable wake-up.

    Async events are created lazily per event loop, so a token can be
    created outside of any loop and cancelled from any thread.
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._events: Dict[int, Tuple[asyncio.AbstractEventLoop, asyncio.Event]] = {}

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        with self._lock:
            self._cancelled.set()
            waiters = list(self._events.values())
        for loop, event in waiters:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(event.set)

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._get_event().wait()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for up to `seconds`, waking early on cancellation.

        Returns:
            True if the token is cancelled, False if the full delay elapsed.
        """
        if self.cancelled:
            return True
        if seconds <= 0:
            return False
        event = self._get_event()
        try:
            await asyncio.wait_for(event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def _get_event(self) -> asyncio.Event:
        """Get or create the wake-up event for the current event loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError("CancellationToken waits must run inside an event loop")

        with self._lock:
            entry = self._events.get(id(loop))
            if entry is None or entry[0] is not loop:
                event = asyncio.Event()
                if self._cancelled.is_set():
                    event.set()
                entry = (loop, event)
                self._events[id(loop)] = entry
            return entry[1]


async def interruptible_sleep(
    seconds: float, token: Optional[CancellationToken] = None
) -> bool:
    """
    Sleep that honours an optional token.

    Returns:
        True if cancelled before the delay elapsed.
    """
    if token is not None:
        return await token.sleep(seconds)
    if seconds > 0:
        await asyncio.sleep(seconds)
    return False
