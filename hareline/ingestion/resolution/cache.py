"""
Resolver lookup cache.

An explicit value handed to the resolver rather than a module global.
Entries expire after ``ttl_s`` seconds; ``clear()`` bumps ``version`` so
callers can tell that a clear happened between two reads.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

V = TypeVar("V")


class ResolverCache(Generic[V]):
    def __init__(self, ttl_s: float = 900.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = ttl_s
        self.version = 0
        self._clock = clock
        self._entries: Dict[str, Tuple[float, V]] = {}

    def get(self, key: str) -> Optional[V]:
        hit = self._entries.get(key)
        if hit is None:
            return None
        stored_at, value = hit
        if self.ttl_s > 0 and self._clock() - stored_at > self.ttl_s:
            self._entries.pop(key, None)
            return None
        return value

    def put(self, key: str, value: V) -> None:
        self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        self._entries.clear()
        self.version += 1

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
