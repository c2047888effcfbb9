"""Tag-aware TTL cache stores.

Two backends share one async interface:

- TTLCache: in-memory, the default. Each uvicorn worker has its own instance,
  so with --workers 2 a city may be fetched once per worker.
- RedisTagCache: shared across workers. Values are JSON encoded; tag
  membership lives in a Redis set ``tag:{name}``.

Entries carry tags so a whole group (e.g. every cached city) can be evicted
at once without knowing the individual keys.
"""

import json
import logging
import time
from typing import Any, Callable, Iterable, Protocol

import redis.asyncio as aioredis

from config import Settings

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(
        self, key: str, value: Any, ttl_seconds: int = 60, tags: Iterable[str] = ()
    ) -> None: ...

    async def invalidate_tags(self, *tags: str) -> int: ...

    async def ping(self) -> bool: ...


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._store: dict[str, tuple[float, Any, frozenset[str]]] = {}
        self._tags: dict[str, set[str]] = {}

    async def get(self, key: str) -> Any | None:
        if key in self._store:
            expires_at, value, _tags = self._store[key]
            if self._clock() < expires_at:
                return value
            self._evict(key)
        return None

    async def set(
        self, key: str, value: Any, ttl_seconds: int = 60, tags: Iterable[str] = ()
    ) -> None:
        self._evict(key)
        tags = frozenset(tags)
        self._store[key] = (self._clock() + ttl_seconds, value, tags)
        for tag in tags:
            self._tags.setdefault(tag, set()).add(key)

    async def invalidate_tags(self, *tags: str) -> int:
        evicted = 0
        for tag in tags:
            for key in self._tags.pop(tag, set()):
                if self._evict(key):
                    evicted += 1
        return evicted

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._store)

    def _evict(self, key: str) -> bool:
        entry = self._store.pop(key, None)
        if entry is None:
            return False
        for tag in entry[2]:
            members = self._tags.get(tag)
            if members is not None:
                members.discard(key)
                if not members:
                    del self._tags[tag]
        return True


def _tag_key(tag: str) -> str:
    return f"tag:{tag}"


class RedisTagCache:
    """
    Redis-backed tag-aware cache.

    Read and write failures degrade to cache misses so a Redis outage never
    takes the lookup down with it. Invalidation failures propagate: the caller
    asked for eviction and must know it did not happen.
    """

    def __init__(self, redis) -> None:
        """
        Args:
            redis: An async Redis client (redis.asyncio compatible) created with
                   decode_responses=True.
        """
        self._redis = redis

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._redis.get(key)
        except Exception:
            logger.warning("Cache GET failed for key=%s", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Cache value for key=%s is not JSON, treating as miss", key)
            return None

    async def set(
        self, key: str, value: Any, ttl_seconds: int = 60, tags: Iterable[str] = ()
    ) -> None:
        # Tag sets expire with their newest member.
        pipe = self._redis.pipeline(transaction=True)
        pipe.set(key, json.dumps(value), ex=ttl_seconds)
        for tag in tags:
            pipe.sadd(_tag_key(tag), key)
            pipe.expire(_tag_key(tag), ttl_seconds)
        try:
            await pipe.execute()
        except Exception:
            logger.warning("Cache SET failed for key=%s", key, exc_info=True)

    async def invalidate_tags(self, *tags: str) -> int:
        evicted = 0
        for tag in tags:
            # Members are read and the set dropped atomically.
            pipe = self._redis.pipeline(transaction=True)
            pipe.smembers(_tag_key(tag))
            pipe.delete(_tag_key(tag))
            keys, _dropped = await pipe.execute()
            if keys:
                evicted += await self._redis.delete(*keys)
            logger.info("Invalidated cache tag %s (%d keys)", tag, len(keys))
        return evicted

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except Exception:
            logger.warning("Cache PING failed", exc_info=True)
            return False

    async def close(self) -> None:
        await self._redis.aclose()


def build_cache(settings: Settings) -> CacheStore:
    """Create the cache store selected by CACHE_BACKEND."""
    if settings.cache_backend == "memory":
        return TTLCache()
    if settings.cache_backend == "redis":
        client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
        )
        return RedisTagCache(client)
    raise ValueError(f"Unknown CACHE_BACKEND: {settings.cache_backend}. Supported: ['memory', 'redis']")
