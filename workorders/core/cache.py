"""Process-local query cache invalidated after every mutation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from time import monotonic
from typing import Any, Awaitable, Callable, Hashable, MutableMapping, Tuple, TypeVar

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, ...]

TICKETS_CACHE_PREFIX: CacheKey = ("tickets",)
EQUIPMENT_CACHE_PREFIX: CacheKey = ("equipment",)
CLIENTS_CACHE_PREFIX: CacheKey = ("clients",)
T = TypeVar("T")


@dataclass(slots=True)
class _CacheEntry:
    value: Any
    stored_at: float


class QueryCache:
    """Cache of query results keyed by tuples.

    Invalidation drops every key that starts with the given prefix, so
    ``invalidate(("tickets",))`` clears all ticket listings regardless of the
    filters they were loaded with. Entries are never merged or patched.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._entries: MutableMapping[CacheKey, _CacheEntry] = {}
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = Lock()

    def get(self, key: CacheKey) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: CacheKey, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            self._entries[key] = _CacheEntry(value=value, stored_at=now)
            self._evict(now)

    async def get_or_load(self, key: CacheKey, loader: Callable[[], Awaitable[T]]) -> T:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        self.set(key, value)
        return value

    def invalidate(self, *prefixes: CacheKey) -> int:
        """Drop every entry whose key starts with one of ``prefixes``."""

        with self._lock:
            doomed = [
                key
                for key in self._entries
                if any(key[: len(prefix)] == prefix for prefix in prefixes)
            ]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cached queries for %s", len(doomed), prefixes)
        return len(doomed)

    def _expired(self, entry: _CacheEntry, now: float) -> bool:
        return self._ttl is not None and now - entry.stored_at > self._ttl

    def _evict(self, now: float) -> None:
        # Entries are kept in insertion order, oldest first.
        if self._ttl is not None:
            for key in [key for key, entry in self._entries.items() if self._expired(entry, now)]:
                del self._entries[key]
        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                del self._entries[next(iter(self._entries))]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
