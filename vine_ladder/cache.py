# vine_ladder/cache.py
"""
Simple in-memory TTL cache for roster and standings lookups.

This is a per-process cache. If you run multiple gunicorn workers, each worker has its own cache.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cached value and the timestamp when it was set."""
    ts: float
    value: Optional[T]


class TTLCache:
    """A small key/value TTL cache with lazy loading and prefix invalidation."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize an empty cache store."""
        self._store: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get_or_set(self, key: str, ttl_seconds: int, loader: Callable[[], T]) -> T:
        """
        Retrieve a cached value if not expired, otherwise compute & store a new value.

        The loader runs outside the lock; if it raises, nothing is stored.
        """
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
        if entry and entry.value is not None and (now - entry.ts) < ttl_seconds:
            return entry.value

        value = loader()
        with self._lock:
            self._store[key] = CacheEntry(ts=now, value=value)
        return value

    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with prefix; return how many were dropped."""
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for k in keys:
                del self._store[k]
        return len(keys)

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            self._store.clear()
