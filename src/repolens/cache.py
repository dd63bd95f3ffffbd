# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Short-lived memoization for query embeddings and search results.
Thread-safe: shared by every in-flight request of the process.

Expired entries are not swept; they are dropped by the lookup that finds them.
"""
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    value: V
    expires_at_ms: float


class TTLCache(Generic[V]):
    def __init__(self, ttl: float, clock: Callable[[], float] = time.time):
        """ttl in seconds; clock returns epoch seconds (injectable for tests)."""
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._now_ms() > entry.expires_at_ms:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None) -> None:
        ttl = self.ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(value, self._now_ms() + ttl * 1000)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
