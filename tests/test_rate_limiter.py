"""Tests for catalog request spacing."""

import asyncio
import time

import pytest

from spots.services.rate_limiter import RateLimiter

# asyncio.sleep may wake a hair early on coarse clocks
TOLERANCE = 0.005


class TestRateLimiter:
    async def test_first_acquire_does_not_wait(self) -> None:
        limiter = RateLimiter(1.0)

        start = time.monotonic()
        await limiter.acquire()

        assert time.monotonic() - start < 0.5

    async def test_sequential_acquires_are_spaced(self) -> None:
        """Five acquisitions take at least four intervals."""
        interval = 0.05
        limiter = RateLimiter(interval)

        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()

        assert time.monotonic() - start >= 4 * interval - TOLERANCE

    async def test_concurrent_callers_are_spaced(self) -> None:
        """Concurrent callers leave the gate one interval apart."""
        interval = 0.03
        limiter = RateLimiter(interval)
        stamps: list[float] = []

        async def worker() -> None:
            await limiter.acquire()
            stamps.append(time.monotonic())

        await asyncio.gather(*(worker() for _ in range(4)))

        stamps.sort()
        gaps = [later - earlier for earlier, later in zip(stamps, stamps[1:])]
        assert len(gaps) == 3
        assert all(gap >= interval - TOLERANCE for gap in gaps)

    async def test_zero_interval_never_waits(self) -> None:
        limiter = RateLimiter(0)

        start = time.monotonic()
        for _ in range(20):
            await limiter.acquire()

        assert time.monotonic() - start < 0.5

    async def test_context_manager_acquires(self) -> None:
        interval = 0.05
        limiter = RateLimiter(interval)

        start = time.monotonic()
        async with limiter:
            pass
        async with limiter:
            pass

        assert time.monotonic() - start >= interval - TOLERANCE

    def test_negative_interval_rejected(self) -> None:
        with pytest.raises(ValueError, match="min_interval"):
            RateLimiter(-1)
