"""
Cache Handling System
=====================

Shared key-value store used for:
- Read-through caching of list-style reads (see cache_utils)
- Atomic counters (rate limits, cache scope versions)
- Set-if-absent flags (creation idempotency guard)

Redis backs every non-development environment; an in-process backend is used
for development and tests.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from guestlens.app.config import settings

logger = logging.getLogger(__name__)

# ============================================================================
# Cache Configuration
# ============================================================================

CACHE_DEFAULT_TTL = 3600  # 1 hour

# Cache key prefixes for organization
CACHE_PREFIX_EVENT = "event"
CACHE_PREFIX_USER = "user"
CACHE_PREFIX_RATE_LIMIT = "rate_limit"
CACHE_PREFIX_IDEMPOTENCY = "idempotency"


# ============================================================================
# Cache Backend Abstract Base
# ============================================================================

class CacheBackend(ABC):
    """
    Operations the pipeline needs from a shared store.

    ``increment`` and ``set_if_absent`` must be atomic across processes; rate
    counters, scope versions and creation guards depend on it.
    """

    def __init__(self):
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "errors": 0}

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    async def set_if_absent(self, key: str, value: Any, ttl: int) -> bool:
        """True only for the caller that created the key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def increment(self, key: str, amount: int = 1) -> int:
        """Add to a counter (missing counts as zero), keeping its expiry."""
        pass

    @abstractmethod
    async def get_ttl(self, key: str) -> int:
        """Seconds left; -1 without expiry, -2 when missing."""
        pass

    @abstractmethod
    async def set_ttl(self, key: str, ttl: int) -> bool:
        pass

    async def get_stats(self) -> Dict[str, Any]:
        lookups = self._stats["hits"] + self._stats["misses"]
        hit_rate = self._stats["hits"] / lookups * 100 if lookups else 0
        return {**self._stats, "total_requests": lookups, "hit_rate": f"{hit_rate:.2f}%"}


# ============================================================================
# Redis Cache Backend
# ============================================================================

class RedisCache(CacheBackend):
    """
    Redis backend over redis.asyncio.

    Values are stored as JSON. A Redis failure is logged and answered with the
    operation's neutral result, so reads fall through to the database.
    """

    def __init__(self, redis_url: str):
        super().__init__()
        self.redis_url = redis_url
        self.redis: Optional[aioredis.Redis] = None

    async def connect(self):
        """Establish Redis connection."""
        try:
            self.redis = aioredis.from_url(self.redis_url, encoding="utf8", decode_responses=True)
            await self.redis.ping()
            logger.info("Redis cache connected")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {str(e)}")
            self.redis = None
            raise

    async def disconnect(self):
        """Close Redis connection."""
        if self.redis:
            try:
                await self.redis.aclose()
                logger.info("Redis cache disconnected")
            except Exception as e:
                logger.error(f"Failed to disconnect Redis: {str(e)}")

    async def _call(self, command: str, key: str, fallback: Any, operation: Callable[[], Awaitable[Any]]) -> Any:
        if not self.redis:
            return fallback
        try:
            return await operation()
        except RedisError as e:
            logger.error(f"Redis {command} error for key {key}: {str(e)}")
            self._stats["errors"] += 1
            return fallback

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._call("GET", key, None, lambda: self.redis.get(key))
        if raw is None:
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return raw

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        payload = json.dumps(value, default=str)
        stored = await self._call("SET", key, False, lambda: self.redis.set(key, payload, ex=ttl or None))
        if stored:
            self._stats["sets"] += 1
        return bool(stored)

    async def set_if_absent(self, key: str, value: Any, ttl: int) -> bool:
        payload = json.dumps(value, default=str)
        created = await self._call("SET NX", key, False, lambda: self.redis.set(key, payload, ex=ttl, nx=True))
        return bool(created)

    async def delete(self, key: str) -> bool:
        removed = await self._call("DEL", key, 0, lambda: self.redis.delete(key))
        if removed:
            self._stats["deletes"] += 1
        return bool(removed)

    async def increment(self, key: str, amount: int = 1) -> int:
        return await self._call("INCRBY", key, 0, lambda: self.redis.incrby(key, amount))

    async def get_ttl(self, key: str) -> int:
        return await self._call("TTL", key, -2, lambda: self.redis.ttl(key))

    async def set_ttl(self, key: str, ttl: int) -> bool:
        return bool(await self._call("EXPIRE", key, False, lambda: self.redis.expire(key, ttl)))


# ============================================================================
# In-Memory Cache Backend (for development/testing)
# ============================================================================

class InMemoryCache(CacheBackend):
    """
    In-process cache backend.

    Every method completes without yielding to the event loop, so each
    read-modify-write below is atomic with respect to other coroutines.
    """

    def __init__(self):
        super().__init__()
        self.entries: Dict[str, Tuple[Any, Optional[float]]] = {}  # key -> (value, expires_at)

    def _live(self, key: str) -> Optional[Tuple[Any, Optional[float]]]:
        entry = self.entries.get(key)
        if entry is not None and entry[1] is not None and time.time() >= entry[1]:
            del self.entries[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[Any]:
        entry = self._live(key)
        self._stats["misses" if entry is None else "hits"] += 1
        return None if entry is None else entry[0]

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        self.entries[key] = (value, time.time() + ttl if ttl else None)
        self._stats["sets"] += 1
        return True

    async def set_if_absent(self, key: str, value: Any, ttl: int) -> bool:
        if self._live(key) is not None:
            return False
        return await self.set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        if self.entries.pop(key, None) is None:
            return False
        self._stats["deletes"] += 1
        return True

    async def increment(self, key: str, amount: int = 1) -> int:
        value, expires_at = self._live(key) or (0, None)
        value = int(value) + amount
        self.entries[key] = (value, expires_at)
        return value

    async def get_ttl(self, key: str) -> int:
        entry = self._live(key)
        if entry is None:
            return -2
        if entry[1] is None:
            return -1
        return max(int(entry[1] - time.time() + 0.999), 0)

    async def set_ttl(self, key: str, ttl: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        self.entries[key] = (entry[0], time.time() + ttl)
        return True

    async def get_stats(self) -> Dict[str, Any]:
        return {**await super().get_stats(), "db_size": len(self.entries)}


# ============================================================================
# Global Cache Instance
# ============================================================================

if settings.ENVIRONMENT in ("development", "test"):
    cache: CacheBackend = InMemoryCache()
else:
    cache: CacheBackend = RedisCache(settings.REDIS_URL)


def get_backend() -> CacheBackend:
    """Return the active backend (resolved at call time so tests can swap it)."""
    return cache


async def init_cache():
    """Initialize cache backend."""
    if isinstance(cache, RedisCache):
        await cache.connect()


async def close_cache():
    """Close cache backend."""
    if isinstance(cache, RedisCache):
        await cache.disconnect()


# ============================================================================
# Cache Key Builders
# ============================================================================


def build_cache_key(*parts: Union[str, int]) -> str:
    """Build a cache key from parts."""
    return ":".join(str(p) for p in parts)


def build_event_scope(event_id: int) -> str:
    """Scope for collections belonging to one event (gallery pages, stats)."""
    return build_cache_key(CACHE_PREFIX_EVENT, event_id)


def build_user_events_scope(user_id: int) -> str:
    """Scope for the list of events a host owns."""
    return build_cache_key(CACHE_PREFIX_USER, user_id, "events")


# ============================================================================
# Cache Operations
# ============================================================================


async def get_cache(key: str) -> Optional[Any]:
    """Get cache value."""
    return await get_backend().get(key)


async def set_cache(
    key: str,
    value: Any,
    ttl: int = CACHE_DEFAULT_TTL,
) -> bool:
    """Set cache value."""
    return await get_backend().set(key, value, ttl)


async def delete_cache(key: str) -> bool:
    """Delete cache value."""
    return await get_backend().delete(key)


async def set_cache_if_absent(key: str, value: Any, ttl: int) -> bool:
    """Atomic set-if-absent with expiry."""
    return await get_backend().set_if_absent(key, value, ttl)


async def increment_counter(key: str, amount: int = 1) -> int:
    """Atomically increment a counter in cache."""
    return await get_backend().increment(key, amount)


async def get_cache_ttl(key: str) -> int:
    """Get remaining TTL for cache key."""
    return await get_backend().get_ttl(key)


async def set_cache_ttl(key: str, ttl: int) -> bool:
    """Set TTL for cache key."""
    return await get_backend().set_ttl(key, ttl)
