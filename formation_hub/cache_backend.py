"""
Shared cache backend (Redis preferred, in-memory fallback).

Cached reads are grouped under *tags*.  Every tag owns a version counter;
``cached_json`` mixes the current versions of its tags into the cache key,
so ``revalidate_tags("formations")`` makes every entry tagged ``formations``
unreachable without having to enumerate keys.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import redis

from formation_hub import config
from formation_hub.metrics import record_cache_access

logger = logging.getLogger(__name__)

# value, absolute expiry (None = never)
_Entry = Tuple[str, Optional[float]]

MEMORY_MAX_ENTRIES = 10_000
SWEEP_INTERVAL_SECONDS = 30.0


class CacheBackend:
    """String key/value store with counters; JSON helpers never raise."""

    backend: str = "none"

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        raise NotImplementedError

    def incr(self, key: str, ttl_seconds: Optional[int] = 60) -> int:
        """Increment ``key`` and return the new value.

        ``ttl_seconds`` applies only when the counter is created.
        """
        raise NotImplementedError

    def get_json(self, key: str) -> Optional[Any]:
        try:
            raw = self.get(key)
            return None if raw is None else json.loads(raw)
        except ValueError:
            logger.warning("discarding undecodable cache entry %s", key)
        except Exception as exc:
            logger.warning("cache read of %s failed: %s", key, exc)
        return None

    def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        try:
            self.set(key, json.dumps(value), ttl_seconds=ttl_seconds)
        except Exception as exc:
            logger.warning("cache write of %s failed: %s", key, exc)


class MemoryCacheBackend(CacheBackend):
    backend = "memory"

    def __init__(self, max_entries: int = MEMORY_MAX_ENTRIES) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._next_sweep = 0.0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _expiry(ttl_seconds: Optional[int], now: float) -> Optional[float]:
        return None if ttl_seconds is None else now + max(1, ttl_seconds)

    def _live(self, key: str, now: float) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is not None and entry[1] is not None and now > entry[1]:
            del self._entries[key]
            return None
        return entry

    def _sweep(self, now: float) -> None:
        """Drop expired entries, then the oldest expiring ones while over capacity.

        Runs at most every ``SWEEP_INTERVAL_SECONDS`` unless the store is full.
        Entries without a TTL (tag versions) are never evicted.
        """
        if now < self._next_sweep and len(self._entries) < self._max_entries:
            return
        self._next_sweep = now + SWEEP_INTERVAL_SECONDS
        for key in [k for k, (_, exp) in self._entries.items() if exp is not None and now > exp]:
            del self._entries[key]
        overflow = len(self._entries) - self._max_entries + 1
        if overflow > 0:
            expiring = [k for k, (_, exp) in self._entries.items() if exp is not None]
            for key in expiring[:overflow]:
                del self._entries[key]
            logger.debug("memory cache full; evicted %d entries", min(overflow, len(expiring)))

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key, time.time())
        return entry[0] if entry else None

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        now = time.time()
        with self._lock:
            self._sweep(now)
            self._entries[key] = (value, self._expiry(ttl_seconds, now))

    def incr(self, key: str, ttl_seconds: Optional[int] = 60) -> int:
        now = time.time()
        with self._lock:
            self._sweep(now)
            entry = self._live(key, now)
            if entry is None:
                count, expires_at = 1, self._expiry(ttl_seconds, now)
            else:
                count = int(entry[0]) + 1 if entry[0].lstrip("-").isdigit() else 1
                expires_at = entry[1]
            self._entries[key] = (str(count), expires_at)
            return count

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisCacheBackend(CacheBackend):
    backend = "redis"

    def __init__(self, url: str) -> None:
        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1,
        )
        # raises straight away when the server is unreachable
        self._client.ping()

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds is None:
            self._client.set(key, value)
        else:
            self._client.setex(key, max(1, int(ttl_seconds)), value)

    def incr(self, key: str, ttl_seconds: Optional[int] = 60) -> int:
        count = int(self._client.incr(key))
        if count == 1 and ttl_seconds is not None:
            self._client.expire(key, max(1, int(ttl_seconds)))
        return count


_backend: Optional[CacheBackend] = None
_backend_lock = threading.Lock()


def _connect() -> CacheBackend:
    if not config.REDIS_URL:
        return MemoryCacheBackend()
    try:
        backend = RedisCacheBackend(config.REDIS_URL)
    except Exception as exc:
        logger.warning("Redis unavailable (%s); using in-memory cache", exc)
        return MemoryCacheBackend()
    logger.info("Using Redis cache at %s", config.REDIS_URL.split("@")[-1])
    return backend


def get_cache_backend() -> CacheBackend:
    """Process-wide cache backend, created on first use."""
    global _backend
    if _backend is None:
        with _backend_lock:
            if _backend is None:
                _backend = _connect()
    return _backend


def reset_cache_backend_for_tests() -> None:
    global _backend
    with _backend_lock:
        _backend = None


# ---------------------------------------------------------------------------
# Tagged reads / revalidation
# ---------------------------------------------------------------------------

def _tag_key(tag: str) -> str:
    return f"tag:{tag}"


def _tag_version(cache: CacheBackend, tag: str) -> str:
    try:
        return cache.get(_tag_key(tag)) or "0"
    except Exception as exc:
        logger.warning("cache tag lookup failed for %s: %s", tag, exc)
        return "0"


def tagged_key(key: str, tags: Iterable[str], cache: Optional[CacheBackend] = None) -> str:
    """Return ``key`` suffixed with the current version of every tag."""
    if cache is None:
        cache = get_cache_backend()
    versions = ",".join(f"{tag}@{_tag_version(cache, tag)}" for tag in sorted(tags))
    return f"{key}|{versions}"


def cached_json(
    key: str,
    loader: Callable[[], Any],
    tags: Iterable[str] = (),
    ttl_seconds: Optional[int] = None,
) -> Any:
    """Return the cached value for ``key`` or compute, store and return it.

    ``loader`` must return something JSON-serialisable.  ``None`` results are
    not cached so a later insert is visible immediately.
    """
    cache = get_cache_backend()
    full_key = tagged_key(key, tags, cache)
    hit = cache.get_json(full_key)
    if hit is not None:
        record_cache_access(True)
        return hit

    record_cache_access(False)
    value = loader()
    if value is not None:
        cache.set_json(full_key, value, ttl_seconds=ttl_seconds)
    return value


def revalidate_tags(*tags: str) -> None:
    """Invalidate every cached read carrying one of ``tags``."""
    cache = get_cache_backend()
    for tag in tags:
        try:
            cache.incr(_tag_key(tag), ttl_seconds=None)
        except Exception as exc:
            logger.error("Failed to revalidate cache tag %s: %s", tag, exc)
        else:
            logger.debug("Revalidated cache tag %s", tag)
