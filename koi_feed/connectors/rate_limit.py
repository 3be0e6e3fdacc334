"""Minimum-interval request gate, one slot per host class.

Not a token bucket: callers are delayed until `min_interval` seconds have
passed since the last permitted call for the same host class. Concurrent
callers queue behind the gate instead of being rejected.
"""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional


class RateLimiter:
    def __init__(
        self,
        min_interval: float = 2.0,
        intervals: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval = min_interval
        self.intervals = dict(intervals or {})
        self._clock = clock
        self._sleep = sleep
        self._last: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _interval(self, host_class: str) -> float:
        return self.intervals.get(host_class, self.min_interval)

    async def acquire(self, host_class: str) -> None:
        """Wait until this host class may be called again."""
        lock = self._locks.setdefault(host_class, asyncio.Lock())
        async with lock:
            last = self._last.get(host_class)
            if last is not None:
                elapsed = self._clock() - last
                wait = self._interval(host_class) - elapsed
                if wait > 0:
                    await self._sleep(wait)
            self._last[host_class] = self._clock()
