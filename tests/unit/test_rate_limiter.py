"""
Unit tests for RateLimiter.
"""

import asyncio

import pytest

from knowledge_rag.rag.rate_limiter import RateLimiter


class TestRateLimiter:
    """Test cases for minimum-interval spacing."""

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self, fake_clock):
        limiter = RateLimiter(2.0, clock=fake_clock, sleep=fake_clock.sleep)

        await limiter.wait()

        assert fake_clock.sleeps == []
        assert limiter.last_call == 100.0

    @pytest.mark.asyncio
    async def test_immediate_second_call_waits_full_interval(self, fake_clock):
        limiter = RateLimiter(2.0, clock=fake_clock, sleep=fake_clock.sleep)

        await limiter.wait()
        await limiter.wait()

        assert fake_clock.sleeps == [2.0]
        assert limiter.last_call == 102.0

    @pytest.mark.asyncio
    async def test_waits_only_the_remainder(self, fake_clock):
        limiter = RateLimiter(2.0, clock=fake_clock, sleep=fake_clock.sleep)

        await limiter.wait()
        fake_clock.now += 1.5
        await limiter.wait()

        assert fake_clock.sleeps == [pytest.approx(0.5)]

    @pytest.mark.asyncio
    async def test_no_wait_after_interval_elapsed(self, fake_clock):
        limiter = RateLimiter(2.0, clock=fake_clock, sleep=fake_clock.sleep)

        await limiter.wait()
        fake_clock.now += 5
        await limiter.wait()

        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrent_callers_are_spaced(self, fake_clock):
        limiter = RateLimiter(2.0, clock=fake_clock, sleep=fake_clock.sleep)
        starts = []

        async def call():
            await limiter.wait()
            starts.append(fake_clock())

        await asyncio.gather(*(call() for _ in range(4)))

        assert starts == [100.0, 102.0, 104.0, 106.0]
        assert fake_clock.sleeps == [2.0, 2.0, 2.0]

    @pytest.mark.asyncio
    async def test_zero_interval_never_sleeps(self, fake_clock):
        limiter = RateLimiter(0, clock=fake_clock, sleep=fake_clock.sleep)

        for _ in range(3):
            await limiter.wait()

        assert fake_clock.sleeps == []

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            RateLimiter(-1)
