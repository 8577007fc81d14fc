"""
Two-layer response cache for third-party embed lookups.

CACHING STRATEGY
================

What we cache:
  - oEmbed responses, keyed by the normalized post URL

Layers:
  1. TTLCache: process-local, bounded entry count, TTL against an injected
     clock. Survives only as long as the worker does.
  2. Redis (optional): shared across workers, TTL enforced by SETEX.

Both layers are advisory. Any miss, error or disabled layer falls through to
the upstream service, so correctness never depends on the cache.
"""

import json
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Optional

import redis.asyncio as redis

from registration_api.core.clock import Clock, utcnow
from registration_api.core.config import Settings
from registration_api.core.logging import get_logger
from registration_api.core.metrics import record_cache_operation

logger = get_logger(__name__)


class TTLCache:
    """Bounded in-memory cache. Oldest entries are evicted first."""

    def __init__(self, ttl: timedelta, max_entries: int = 512, clock: Clock = utcnow):
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: OrderedDict[str, tuple[datetime, Any]] = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self.clock(), value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CacheService:
    def __init__(
        self,
        memory: TTLCache,
        redis_client: Optional[redis.Redis] = None,
        namespace: str = "cache",
    ):
        self.memory = memory
        self.redis = redis_client
        self.namespace = namespace

    def _redis_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        value = self.memory.get(key)
        record_cache_operation("memory", value is not None)
        if value is not None:
            logger.debug("cache_hit", layer="memory", key=key)
            return value

        if self.redis is None:
            return None

        try:
            data = await self.redis.get(self._redis_key(key))
        except Exception as e:
            logger.error("cache_get_error", key=key, error=str(e))
            return None

        record_cache_operation("redis", data is not None)
        if data is None:
            logger.debug("cache_miss", key=key)
            return None

        value = json.loads(data)
        self.memory.set(key, value)
        logger.debug("cache_hit", layer="redis", key=key)
        return value

    async def set(self, key: str, value: Any) -> None:
        self.memory.set(key, value)
        if self.redis is None:
            return
        ttl_seconds = int(self.memory.ttl.total_seconds())
        try:
            await self.redis.setex(self._redis_key(key), ttl_seconds, json.dumps(value, default=str))
            logger.debug("cache_set", key=key, ttl=ttl_seconds)
        except Exception as e:
            logger.error("cache_set_error", key=key, error=str(e))

    async def stats(self) -> dict:
        stats = {"memory_entries": len(self.memory)}
        if self.redis is None:
            stats["redis"] = "disabled"
            return stats
        try:
            await self.redis.ping()
            stats["redis"] = "connected"
        except Exception as e:
            stats["redis"] = f"error: {e}"
        return stats

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None


async def connect_redis(settings: Settings) -> Optional[redis.Redis]:
    """Open the shared cache connection. Returns None if Redis is disabled or unreachable."""
    if not settings.REDIS_ENABLED:
        return None

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        await client.ping()
        logger.info("redis_connected", url=settings.REDIS_URL)
        return client
    except Exception as e:
        logger.error("redis_connection_failed", error=str(e))
        return None


def build_cache_service(
    settings: Settings,
    redis_client: Optional[redis.Redis] = None,
    clock: Clock = utcnow,
    namespace: str = "oembed",
) -> CacheService:
    memory = TTLCache(
        ttl=timedelta(seconds=settings.CACHE_TTL_SECONDS),
        max_entries=settings.CACHE_MAX_ENTRIES,
        clock=clock,
    )
    return CacheService(memory, redis_client, namespace=namespace)
