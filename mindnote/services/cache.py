"""
CacheStore - Bounded TTL cache for read-call responses.

Features:
- Deterministic keys derived from (method, url, body)
- Lazy expiry on lookup plus explicit sweep
- Oldest-entry eviction when full
- Payloads are handed out as deep copies

All operations are synchronous: they never suspend, so concurrent
coroutines on one event loop cannot interleave inside them.
"""

import copy
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

MAX_KEY_LENGTH = 200


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    timestamp: datetime
    ttl: timedelta

    def is_expired(self, now: datetime) -> bool:
        """Check if entry is past its TTL."""
        return now - self.timestamp > self.ttl


class CacheStore:
    """
    In-memory response cache keyed by request fingerprint.

    Usage:
        cache = CacheStore(default_ttl=timedelta(minutes=5))

        key = cache.generate_key("GET", "https://api.example.com/notes/42")
        data = cache.get(key)
        if data is None:
            data = await fetch()
            cache.set(key, data)
    """

    def __init__(
        self,
        max_size: int = 500,
        default_ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = datetime.now,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._debug = debug
        self._stats = CacheStats()

    @staticmethod
    def generate_key(method: str | None, url: str, body: Any = None) -> str:
        """Generate a cache key from method, URL and body."""
        method = (method or "GET").upper()
        if body is None:
            serialized = ""
        elif isinstance(body, bytes):
            serialized = body.decode("utf-8", errors="replace")
        elif isinstance(body, str):
            serialized = body
        else:
            serialized = json.dumps(
                body, sort_keys=True, separators=(",", ":"), default=str
            )

        full_key = f"{method}:{url}:{serialized}"

        # Hash long keys
        if len(full_key) > MAX_KEY_LENGTH:
            return f"{method}:sha256:{hashlib.sha256(full_key.encode()).hexdigest()}"

        return full_key

    def get(self, key: str) -> Any | None:
        """
        Get value from cache.

        Returns a copy of the payload if present and fresh, None otherwise.
        Expired entries are removed.
        """
        entry = self._memory.get(key)
        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:50]}")
            return None

        if entry.is_expired(self._clock()):
            del self._memory[key]
            self._stats.misses += 1
            self._stats.expirations += 1
            self._log(f"EXPIRED: {key[:50]}")
            return None

        self._stats.hits += 1
        self._log(f"HIT: {key[:50]}")
        return copy.deepcopy(entry.data)

    def set(self, key: str, data: Any, ttl: timedelta | None = None) -> None:
        """
        Set value in cache, replacing any existing entry for the key.

        Args:
            key: Cache key
            data: Data to cache
            ttl: Time to live (uses default if not specified)
        """
        ttl = ttl if ttl is not None else self._default_ttl

        if len(self._memory) >= self._max_size and key not in self._memory:
            self._evict_oldest()

        self._memory[key] = CacheEntry(
            data=copy.deepcopy(data),
            timestamp=self._clock(),
            ttl=ttl,
        )
        self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")

    def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        if key in self._memory:
            del self._memory[key]
            self._log(f"DELETE: {key[:50]}")
            return True
        return False

    def invalidate(self, pattern: str) -> int:
        """
        Invalidate all keys containing a substring.

        Returns:
            Number of entries invalidated
        """
        keys_to_delete = [k for k in self._memory if pattern in k]
        for key in keys_to_delete:
            del self._memory[key]

        if keys_to_delete:
            self._log(f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'")

        return len(keys_to_delete)

    def clear(self) -> int:
        """Clear all cache entries. Returns count of removed entries."""
        count = len(self._memory)
        self._memory.clear()
        self._log(f"CLEAR: {count} entries removed")
        return count

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock()
        expired_keys = [k for k, v in self._memory.items() if v.is_expired(now)]
        for key in expired_keys:
            del self._memory[key]

        if expired_keys:
            self._stats.expirations += len(expired_keys)
            self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

        return len(expired_keys)

    def __contains__(self, key: str) -> bool:
        entry = self._memory.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._memory)

    def _evict_oldest(self) -> None:
        """Evict the oldest entry."""
        if not self._memory:
            return

        oldest_key = min(
            self._memory.keys(),
            key=lambda k: self._memory[k].timestamp,
        )
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheStore] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
