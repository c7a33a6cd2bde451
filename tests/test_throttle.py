"""Tests for the token-bucket throttle."""

import asyncio
import time

import pytest

from gonlineviz.throttle import TokenBucket


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _drain(bucket, count):
    for _ in range(count):
        assert bucket.take() == 0.0


class TestTokenBucket:
    def test_burst_up_to_capacity(self):
        bucket = TokenBucket(capacity=10, rate=10, clock=FakeClock())
        _drain(bucket, 10)

    def test_over_capacity_waits(self):
        bucket = TokenBucket(capacity=10, rate=10, clock=FakeClock())
        _drain(bucket, 10)
        assert bucket.take() == pytest.approx(0.1)
        assert bucket.take() == pytest.approx(0.2)

    def test_refill(self):
        clock = FakeClock()
        bucket = TokenBucket(capacity=10, rate=10, clock=clock)
        _drain(bucket, 10)
        clock.now += 0.5
        _drain(bucket, 5)
        assert bucket.take() == pytest.approx(0.1)

    def test_refill_is_capped(self):
        clock = FakeClock()
        bucket = TokenBucket(capacity=3, rate=10, clock=clock)
        bucket.take()
        clock.now += 60
        _drain(bucket, 3)
        assert bucket.take() > 0

    def test_negative_balance_is_repaid(self):
        clock = FakeClock()
        bucket = TokenBucket(capacity=1, rate=1, clock=clock)
        bucket.take()
        assert bucket.take() == pytest.approx(1.0)
        clock.now += 2
        assert bucket.take() == 0.0

    def test_refund(self):
        bucket = TokenBucket(capacity=1, rate=1, clock=FakeClock())
        bucket.take()
        bucket.refund()
        assert bucket.take() == 0.0

    def test_refund_is_capped(self):
        bucket = TokenBucket(capacity=1, rate=1, clock=FakeClock())
        bucket.refund(5)
        bucket.take()
        assert bucket.take() == pytest.approx(1.0)

    @pytest.mark.parametrize("capacity, rate", [(0, 10), (10, 0), (-1, 1)])
    def test_invalid_parameters(self, capacity, rate):
        with pytest.raises(ValueError):
            TokenBucket(capacity=capacity, rate=rate)

    def test_acquire(self):
        bucket = TokenBucket(capacity=2, rate=20)

        async def _test():
            start = time.monotonic()
            await asyncio.gather(*(bucket.acquire() for _ in range(4)))
            return time.monotonic() - start

        # two immediate, then 0.05s and 0.1s
        assert asyncio.run(_test()) >= 0.09

    def test_cancelled_acquire_returns_its_token(self):
        clock = FakeClock()
        bucket = TokenBucket(capacity=1, rate=1, clock=clock)
        bucket.take()

        async def _test():
            waiter = asyncio.ensure_future(bucket.acquire())
            await asyncio.sleep(0.01)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter

        asyncio.run(_test())
        clock.now += 1
        assert bucket.take() == 0.0
