"""
Token bucket pacing for load runs.

When a LoadTestConfig sets requests_per_second, every virtual user takes a
token from one shared RequestPacer before starting an iteration. Tokens
refill continuously at the configured rate up to the burst size.

Waiters reserve their token up front (the balance may go negative) and then
sleep until it is due, so concurrent users are served in arrival order
without polling.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from volley.cancellation import CancellationToken, interruptible_sleep


class RequestPacer:
    """
    Async token bucket limiter.

    Example:
        pacer = RequestPacer(requests_per_second=50)
        if await pacer.acquire(token=token, deadline=end_time):
            await run_iteration()
    """

    def __init__(
        self,
        requests_per_second: float,
        *,
        burst_size: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be > 0")
        if burst_size < 1:
            raise ValueError("burst_size must be >= 1")
        self.requests_per_second = float(requests_per_second)
        self.burst_size = burst_size
        self._clock = clock
        self._tokens = float(burst_size)
        self._last_update = clock()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last_update)
        self._tokens = min(
            float(self.burst_size), self._tokens + elapsed * self.requests_per_second
        )
        self._last_update = now

    def reserve(self, deadline: Optional[float] = None) -> Optional[float]:
        """
        Reserve one token.

        Args:
            deadline: Clock value after which the token is useless.

        Returns:
            Seconds to wait before using the token, or None if it would only
            become available after the deadline (nothing is reserved then).
        """
        with self._lock:
            now = self._clock()
            self._refill(now)
            wait = 0.0
            if self._tokens < 1:
                wait = (1 - self._tokens) / self.requests_per_second
            if deadline is not None and now + wait >= deadline:
                return None
            self._tokens -= 1
            return wait

    async def acquire(
        self,
        *,
        token: Optional[CancellationToken] = None,
        deadline: Optional[float] = None,
    ) -> bool:
        """
        Wait for a token.

        Returns:
            True when the caller may start an iteration; False if the run is
            cancelled or the deadline passes first.
        """
        wait = self.reserve(deadline)
        if wait is None:
            return False
        if await interruptible_sleep(wait, token):
            return False
        return True
