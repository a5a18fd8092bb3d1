"""
External cache adapter contract and the in-process default.

Any object with async `get`, `set` and `delete` can back a data source;
`RedisCache` is the production adapter and `InMemoryLRUCache` is used when
no adapter is supplied. Values are always codec text; keys are always
strings.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Optional, Protocol, Tuple, runtime_checkable

from alchemy_datasource.core.config.config import Config


@runtime_checkable
class KeyValueCache(Protocol):
    """Protocol for cache backends used by the cache-aside read path."""

    async def get(self, key: str) -> Optional[str]:
        """Return cached value or None."""
        ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """
        Store value. A positive `ttl` sets the expiry in seconds; `None`
        leaves the expiry of an existing entry untouched.
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove key from cache."""
        ...


class InMemoryLRUCache:
    """
    In-memory LRU cache with per-entry expiry.

    - Uses OrderedDict for O(1) access and LRU ordering
    - Evicts the least recently used entry when at capacity
    - Expired entries are dropped lazily on access
    """

    def __init__(self, max_size: Optional[int] = None) -> None:
        self._max_size = max_size or Config.CACHE_MAX_SIZE
        # key -> (value, expires_at monotonic seconds or None)
        self._entries: OrderedDict[str, Tuple[str, Optional[float]]] = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= time.monotonic():
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live_entry(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry[0]

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl is None:
            existing = self._live_entry(key)
            expires_at = existing[1] if existing is not None else None
        elif ttl > 0:
            expires_at = time.monotonic() + ttl
        else:
            expires_at = None

        self._entries[key] = (value, expires_at)
        self._entries.move_to_end(key)

        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._live_entry(key) is not None
