"""Tests for caching functionality."""

import pytest
import redis.asyncio as redis

from gestock.scope import Scope, clear_scope_context, set_current_scope
from gestock.utils.cache import cache_key, cached, get_redis, invalidate_cache


class BrokenRedis:
    async def get(self, key):
        raise redis.ConnectionError("connection refused")

    async def setex(self, key, ttl, value):
        raise redis.ConnectionError("connection refused")

    async def scan_iter(self, match="*"):
        raise redis.ConnectionError("connection refused")
        yield  # pragma: no cover


@pytest.mark.cache
@pytest.mark.asyncio
class TestCacheUtility:
    """Test cache utility functions."""

    async def test_get_redis(self, fake_redis):
        client = await get_redis()
        assert client is fake_redis
        assert await client.ping() is True

    async def test_cache_key_generation(self):
        key1 = cache_key(limit=50, offset=0)
        key2 = cache_key(limit=50, offset=0)
        key3 = cache_key(limit=100, offset=0)

        assert key1 == key2
        assert key1 != key3
        assert cache_key() == "default"

    async def test_cached_decorator_is_scoped(self, fake_redis):
        call_count = 0

        @cached(ttl=10, prefix="test")
        async def expensive_function(limit: int = 10):
            nonlocal call_count
            call_count += 1
            return {"result": limit * 2}

        set_current_scope(Scope("t1", "a"))
        try:
            assert await expensive_function(limit=5) == {"result": 10}
            assert await expensive_function(limit=5) == {"result": 10}
            assert call_count == 1

            await expensive_function(limit=6)
            assert call_count == 2

            # Same arguments, different branch: separate entry
            set_current_scope(Scope("t1", "b"))
            await expensive_function(limit=5)
            assert call_count == 3
        finally:
            clear_scope_context()

        assert any(k.startswith("s:t1:a:test:expensive_function:") for k in fake_redis.data)
        assert any(k.startswith("s:t1:b:test:expensive_function:") for k in fake_redis.data)

    async def test_invalidation_stays_in_scope(self, fake_redis):
        await fake_redis.set("s:t1:a:providers:list:abc", "[]")
        await fake_redis.set("s:t1:b:providers:list:abc", "[]")
        await fake_redis.set("s:t1:a:other:list:abc", "[]")

        await invalidate_cache("providers:*", scope=Scope("t1", "a"))

        assert set(fake_redis.data) == {"s:t1:b:providers:list:abc", "s:t1:a:other:list:abc"}

    async def test_invalidation_uses_current_scope(self, fake_redis):
        await fake_redis.set("s:t1:-:providers:list:abc", "[]")
        await fake_redis.set("s:t1:a:providers:list:abc", "[]")

        set_current_scope(Scope("t1"))
        try:
            await invalidate_cache("providers:*")
        finally:
            clear_scope_context()

        assert set(fake_redis.data) == {"s:t1:a:providers:list:abc"}

    async def test_redis_failure_falls_back(self, monkeypatch):
        monkeypatch.setattr("gestock.utils.cache._redis_client", BrokenRedis())
        calls = 0

        @cached(ttl=10, prefix="test")
        async def listing():
            nonlocal calls
            calls += 1
            return [1, 2]

        assert await listing() == [1, 2]
        assert await listing() == [1, 2]
        assert calls == 2

        # Invalidation failures are logged, not raised
        await invalidate_cache("test:*", scope=Scope("t1", "a"))
