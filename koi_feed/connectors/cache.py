"""Very small in-memory TTL cache for connector responses.

Process-local and unbounded: entries are never evicted, only treated as
stale once `now - stored_at >= ttl`. Each process starts cold. Readers pass
the TTL so one map can hold live data (seconds) next to results (hours).
"""
from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

_MISSING = object()


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str, ttl: float, default: Any = None) -> Any:
        """Return the cached value for key if younger than ttl seconds."""
        ent = self._entries.get(key)
        if ent is not None:
            ts, val = ent
            if self._clock() - ts < ttl:
                return val
        return default

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock(), value)

    async def get_or_load(
        self,
        key: str,
        ttl: float,
        loader: Callable[[], Awaitable[Any]],
        store_empty: bool = True,
    ) -> Any:
        """Return cached value for key if fresh; otherwise await loader(), cache and return it.

        With store_empty=False an empty/None result is returned but not
        cached, so the next call retries the source.
        """
        val = self.get(key, ttl, _MISSING)
        if val is not _MISSING:
            return val
        val = await loader()
        if store_empty or val:
            self.set(key, val)
        return val

    def clear(self, prefix: Optional[str] = None) -> None:
        if prefix is None:
            self._entries.clear()
            return
        for k in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[k]

    def info(self) -> Dict[str, float]:
        now = self._clock()
        return {k: (now - ts) for k, (ts, _) in self._entries.items()}
