"""
TTL cache for slow-changing Docker API results.

`docker inspect` output (restart count, quotas, ports, mounts) changes far
less often than the refresh loop runs, and a full re-list inspects every
container. The cache keeps those results for a short TTL so that a re-list
triggered by a single new container does not re-inspect all the others.

Architecture:
- CacheEntry: value + monotonic timestamp + TTL
- CacheManager: thread-safe dict of entries (RLock), TTL per key prefix,
  hit/miss counters for the shutdown log line
- cached(): method decorator keyed on "<prefix>:<first argument>"

The refresh worker calls cleanup_expired() periodically so entries for
removed containers do not pile up.
"""

import time
import threading
from typing import Dict, Any, Optional
from dataclasses import dataclass
from functools import wraps
import logging

logger = logging.getLogger(__name__)

DEFAULT_TTL = 2.0


@dataclass
class CacheEntry:
    value: Any
    stored_at: float
    ttl: float

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        return now - self.stored_at > self.ttl


class CacheManager:
    """Thread-safe TTL cache shared by the backend's worker threads."""

    def __init__(self):
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._stats = {'hits': 0, 'misses': 0, 'evictions': 0}
        # TTL in seconds per key prefix
        self.ttl_config: Dict[str, float] = {
            'inspect': DEFAULT_TTL,
        }

    def configure_ttl(self, prefix: str, seconds: float) -> None:
        with self._lock:
            self.ttl_config[prefix] = seconds

    def _ttl_for(self, key: str) -> float:
        prefix = key.split(":", 1)[0]
        return self.ttl_config.get(prefix, DEFAULT_TTL)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats['misses'] += 1
                return None
            if entry.is_expired():
                del self._cache[key]
                self._stats['misses'] += 1
                self._stats['evictions'] += 1
                return None
            self._stats['hits'] += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_override: Optional[float] = None) -> None:
        ttl = ttl_override if ttl_override is not None else self._ttl_for(key)
        with self._lock:
            self._cache[key] = CacheEntry(value, time.monotonic(), ttl)

    def invalidate(self, pattern: Optional[str] = None) -> None:
        """Drop every entry, or only the ones whose key starts with pattern."""
        with self._lock:
            if pattern is None:
                self._cache.clear()
                return
            stale = [k for k in self._cache if k.startswith(pattern)]
            for key in stale:
                del self._cache[key]
            logger.debug(f"Invalidated {len(stale)} cache entries for pattern: {pattern}")

    def cleanup_expired(self) -> int:
        with self._lock:
            now = time.monotonic()
            stale = [k for k, entry in self._cache.items() if entry.is_expired(now)]
            for key in stale:
                del self._cache[key]
            if stale:
                self._stats['evictions'] += len(stale)
                logger.debug(f"Cleaned up {len(stale)} expired cache entries")
            return len(stale)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._stats['hits'] + self._stats['misses']
            hit_rate = (self._stats['hits'] / total * 100) if total > 0 else 0
            return {
                **self._stats,
                'cache_size': len(self._cache),
                'hit_rate_percent': round(hit_rate, 2),
            }


# Global cache instance
cache_manager = CacheManager()


def cached(key_prefix: str, ttl_override: Optional[float] = None):
    """Cache a method's result under "<key_prefix>:<first positional arg>".

    None results are not cached, so a failed lookup is retried next call.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            cache_key = f"{key_prefix}:{args[0] if args else ''}"
            hit = cache_manager.get(cache_key)
            if hit is not None:
                return hit
            result = func(self, *args, **kwargs)
            if result is not None:
                cache_manager.set(cache_key, result, ttl_override)
            return result
        return wrapper
    return decorator
