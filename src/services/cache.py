"""In-process TTL cache with request deduplication.

Entries expire lazily when read. Concurrent ``get_or_fetch`` calls for the
same key share one in-flight task; the task unregisters itself when it
finishes, whether it succeeded or failed.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar

from loguru import logger

from config import Configuration


T = TypeVar("T")


class TTLClass(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"
    SEARCH = "search"
    VIEWPORT = "viewport"


DEFAULT_TTLS: Mapping[TTLClass, float] = {
    TTLClass.STATIC: 24 * 60 * 60,
    TTLClass.DYNAMIC: 15 * 60,
    TTLClass.SEARCH: 5 * 60,
    TTLClass.VIEWPORT: 2 * 60,
}


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    ttl_class: TTLClass


class DiscoveryCache:
    def __init__(
        self,
        ttls: Optional[Mapping[TTLClass, float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttls: Dict[TTLClass, float] = {**DEFAULT_TTLS, **(ttls or {})}
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_config(cls, cfg: Configuration, clock: Callable[[], float] = time.monotonic) -> "DiscoveryCache":
        return cls(
            {
                TTLClass.STATIC: cfg.cache_ttl_static,
                TTLClass.DYNAMIC: cfg.cache_ttl_dynamic,
                TTLClass.SEARCH: cfg.cache_ttl_search,
                TTLClass.VIEWPORT: cfg.cache_ttl_viewport,
            },
            clock=clock,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() - entry.created_at > self.ttls[entry.ttl_class]:
            del self._entries[key]
            self._misses += 1
            return None
        self._hits += 1
        value = entry.value
        return list(value) if isinstance(value, list) else value

    def set(self, key: str, value: Any, ttl_class: TTLClass) -> None:
        self._entries[key] = CacheEntry(value=value, created_at=self._clock(), ttl_class=ttl_class)

    async def get_or_fetch(self, key: str, ttl_class: TTLClass, fetch: Callable[[], Awaitable[T]]) -> T:
        """Return a fresh cached value, or join/start the single fetch for ``key``.

        ``None`` results are handed back but never cached.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("cache hit {}", key)
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._populate(key, ttl_class, fetch))
            self._inflight[key] = task
        else:
            logger.debug("joining in-flight request {}", key)
        # shield: one waiter giving up must not cancel the shared fetch
        value = await asyncio.shield(task)
        return list(value) if isinstance(value, list) else value

    async def _populate(self, key: str, ttl_class: TTLClass, fetch: Callable[[], Awaitable[T]]) -> T:
        try:
            value = await fetch()
            if value is not None:
                self.set(key, value, ttl_class)
            return value
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "in_flight": len(self._inflight),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }
