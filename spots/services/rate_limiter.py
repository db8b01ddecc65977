"""
Request spacing for the catalog service.

Scryfall asks clients to keep 50-100ms between requests. All catalog
calls in the process go through one RateLimiter, so concurrent callers
queue on a single lock and leave the gate one interval apart.
"""

import asyncio
import time


class RateLimiter:
    """
    Serializes callers so that acquisitions are at least `min_interval` apart.

    The lock is held while sleeping: a waiting caller cannot observe the
    previous timestamp until the caller ahead of it has stamped a new one.
    """

    def __init__(self, min_interval: float) -> None:
        if min_interval < 0:
            raise ValueError(f"min_interval must be >= 0, got {min_interval}")
        self.min_interval = min_interval
        self._lock = asyncio.Lock()
        self._last_acquired: float | None = None

    async def acquire(self) -> None:
        """Wait until the next request may be sent."""
        async with self._lock:
            if self._last_acquired is not None:
                elapsed = time.monotonic() - self._last_acquired
                if elapsed < self.min_interval:
                    await asyncio.sleep(self.min_interval - elapsed)
            self._last_acquired = time.monotonic()

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        return None
