"""
Tests for the oEmbed response cache.
"""

import json
from datetime import timedelta

import pytest

from registration_api.services.cache_service import CacheService, TTLCache


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = fail
        self.closed = False

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        if self.fail:
            raise ConnectionError("redis down")
        self.data[key] = value
        self.ttls[key] = ttl

    async def ping(self):
        if self.fail:
            raise ConnectionError("redis down")
        return True

    async def aclose(self):
        self.closed = True


def test_ttl_cache_expires_entries(clock):
    cache = TTLCache(ttl=timedelta(hours=1), clock=clock)
    cache.set("k", {"html": "x"})

    clock.advance(minutes=59)
    assert cache.get("k") == {"html": "x"}

    clock.advance(minutes=1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_ttl_cache_evicts_oldest(clock):
    cache = TTLCache(ttl=timedelta(hours=1), max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3
    assert len(cache) == 2


@pytest.mark.asyncio
async def test_memory_only_cache(clock):
    service = CacheService(TTLCache(ttl=timedelta(hours=1), clock=clock))

    assert await service.get("k") is None
    await service.set("k", {"html": "x"})
    assert await service.get("k") == {"html": "x"}
    assert await service.stats() == {"memory_entries": 1, "redis": "disabled"}


@pytest.mark.asyncio
async def test_redis_layer_backfills_memory(clock):
    redis_client = FakeRedis()
    redis_client.data["oembed:k"] = json.dumps({"html": "shared"})
    memory = TTLCache(ttl=timedelta(hours=1), clock=clock)
    service = CacheService(memory, redis_client, namespace="oembed")

    assert await service.get("k") == {"html": "shared"}
    assert memory.get("k") == {"html": "shared"}


@pytest.mark.asyncio
async def test_set_writes_through_with_ttl(clock):
    redis_client = FakeRedis()
    service = CacheService(TTLCache(ttl=timedelta(hours=1), clock=clock), redis_client, namespace="oembed")

    await service.set("k", {"html": "x"})

    assert json.loads(redis_client.data["oembed:k"]) == {"html": "x"}
    assert redis_client.ttls["oembed:k"] == 3600


@pytest.mark.asyncio
async def test_redis_errors_fall_through(clock):
    redis_client = FakeRedis(fail=True)
    service = CacheService(TTLCache(ttl=timedelta(hours=1), clock=clock), redis_client)

    assert await service.get("k") is None
    await service.set("k", 1)
    assert await service.get("k") == 1
    assert (await service.stats())["redis"].startswith("error")

    await service.close()
    assert redis_client.closed
    assert service.redis is None
