"""In-memory TTL cache used to avoid repeated reads on hot routes.

Minimal dependencies, thread-safe, and easy to swap for Redis while keeping
the same interface and behaviors.

Expiry rule: an entry is expired once ``now >= expires_at``. ``get``,
``stats``, ``cleanup`` and ``invalidate`` all apply the same rule, so no read
ever reports an expired entry even if the periodic sweep has not run yet.

Values are returned by reference. Callers must treat cached payloads as
read-only.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Union

from clubscore.core.errors import require_positive

logger = logging.getLogger(__name__)


KeyPattern = Union[str, re.Pattern[str], Callable[[str], bool]]


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Any
    expires_at: float


class SimpleTTLCache:
    """Thread-safe, in-memory TTL cache with optional LRU eviction.

    Attributes:
        default_ttl_seconds: Time-to-live applied when set() gets no ttl.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        default_ttl_seconds: float = 60,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        require_positive("default_ttl_seconds", default_ttl_seconds)
        if max_entries is not None:
            require_positive("max_entries", max_entries)

        self._default_ttl = default_ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"SimpleTTLCache(default_ttl_seconds={self._default_ttl}, "
            f"max_entries={self._max_entries}, size={len(self._store)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def get(self, key: str) -> Any | None:
        """Retrieve a cached value if it exists and is not expired.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found/expired.
        """

        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={
                        "cache_key": key[:64],
                        "reason": "not_found",
                    },
                )
                return None

            if self._is_expired(item, self._clock()):
                self._evict_single(key)
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={
                        "cache_key": key[:64],
                        "reason": "expired",
                    },
                )
                return None

            self._hits += 1
            self._store.move_to_end(key)  # mark as recently used
            logger.debug(
                "cache.hit",
                extra={
                    "cache_key": key[:64],
                },
            )
            return item.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store a value with TTL, evicting as needed.

        Args:
            key: Cache key.
            value: Value to store. None removes the key instead.
            ttl_seconds: Lifetime of this entry; defaults to default_ttl_seconds.

        Raises:
            ConfigurationAppError: If ttl_seconds is not positive.
        """

        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        require_positive("ttl_seconds", ttl)

        with self._lock:
            if value is None:
                self._store.pop(key, None)
                return

            self._store[key] = CacheItem(value=value, expires_at=self._clock() + ttl)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.set",
                extra={
                    "cache_key": key[:64],
                    "size": len(self._store),
                    "ttl_s": ttl,
                },
            )

    def delete(self, key: str) -> None:
        """Remove a key; no-op if absent."""

        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def cleanup(self) -> int:
        """Evict every expired entry.

        Returns:
            Number of entries removed.
        """

        with self._lock:
            removed = self._evict_expired_locked()

        if removed:
            logger.debug("cache.cleanup", extra={"removed": removed})
        return removed

    def invalidate(self, pattern: KeyPattern) -> int:
        """Delete entries by exact key, regex or predicate.

        Args:
            pattern: A string is matched as an exact key; a compiled regex is
                matched with ``search``; a callable receives each key.

        Returns:
            Number of entries removed.
        """

        with self._lock:
            if isinstance(pattern, str):
                matches = [pattern] if pattern in self._store else []
            elif isinstance(pattern, re.Pattern):
                matches = [key for key in self._store if pattern.search(key)]
            else:
                matches = [key for key in self._store if pattern(key)]

            for key in matches:
                self._store.pop(key, None)

        logger.info("cache.invalidated", extra={"removed": len(matches)})
        return len(matches)

    def stats(self) -> dict[str, Any]:
        """Return cache metrics and live keys without exposing values.

        Expired entries are evicted first, so ``size`` and ``keys`` only ever
        describe entries ``get`` would return.
        """

        with self._lock:
            self._evict_expired_locked()
            return {
                "size": len(self._store),
                "keys": list(self._store),
                "default_ttl_seconds": self._default_ttl,
                "max_entries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> int:
        now = self._clock()
        expired_keys = [k for k, item in self._store.items() if self._is_expired(item, now)]
        for key in expired_keys:
            self._evict_single(key)
        return len(expired_keys)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

    @staticmethod
    def _is_expired(item: CacheItem, now: float) -> bool:
        return now >= item.expires_at
