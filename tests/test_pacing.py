import asyncio
import time

import pytest

from volley.cancellation import CancellationToken
from volley.load.pacing import RequestPacer


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestReserve:
    def test_burst_then_spacing(self):
        clock = FakeClock()
        pacer = RequestPacer(10, clock=clock)

        assert pacer.reserve() == 0.0
        assert pacer.reserve() == pytest.approx(0.1)
        assert pacer.reserve() == pytest.approx(0.2)

    def test_refills_over_time(self):
        clock = FakeClock()
        pacer = RequestPacer(10, clock=clock)
        pacer.reserve()
        clock.now += 1.0
        assert pacer.reserve() == 0.0

    def test_deadline_refuses_late_tokens(self):
        clock = FakeClock()
        pacer = RequestPacer(1, clock=clock)
        pacer.reserve()
        assert pacer.reserve(deadline=clock.now + 0.5) is None
        # The refused reservation left the bucket unchanged.
        assert pacer.reserve(deadline=clock.now + 5) == pytest.approx(1.0)

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            RequestPacer(0)


class TestAcquire:
    @pytest.mark.asyncio
    async def test_rate_is_enforced(self):
        pacer = RequestPacer(50)
        started = time.monotonic()
        for _ in range(6):
            assert await pacer.acquire()
        # 1 immediate token + 5 spaced at 20ms
        assert time.monotonic() - started >= 0.09

    @pytest.mark.asyncio
    async def test_cancelled_token(self):
        pacer = RequestPacer(1)
        await pacer.acquire()
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        assert await pacer.acquire(token=token) is False
