"""Bounded in-process caches.

``BoundedCache`` is an LRU map with an optional per-entry time-to-live.
The experiment manager uses it without a TTL (capacity bound only) and the
bandit uses it with a short TTL for repeated selection requests.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedCache(Generic[K, V]):
    """LRU cache with a capacity bound and an optional TTL in seconds.

    Parameters
    ----------
    maxsize : int
        Maximum number of entries; the least recently used entry is evicted
        first.
    ttl : float | None
        Entry lifetime in seconds.  ``None`` disables expiry.
    clock : Callable[[], float]
        Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        maxsize: int = 1024,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive when set")
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._data: OrderedDict[K, tuple[float, V]] = OrderedDict()

    def get(self, key: K, default: V | None = None) -> V | None:
        entry = self._data.get(key)
        if entry is None:
            return default
        stored_at, value = entry
        if self.ttl is not None and self._clock() - stored_at >= self.ttl:
            del self._data[key]
            return default
        self._data.move_to_end(key)
        return value

    def set(self, key: K, value: V) -> None:
        self._data[key] = (self._clock(), value)
        self._data.move_to_end(key)
        while len(self._data) > self.maxsize:
            self._data.popitem(last=False)

    def pop(self, key: K, default: V | None = None) -> V | None:
        entry = self._data.pop(key, None)
        return default if entry is None else entry[1]

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._data)
