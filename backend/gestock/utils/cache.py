"""Redis listing cache, partitioned by scope.

Keys look like ``s:{tenant}:{branch}:{prefix}:{func}:{hash}``; the
``s:{label}:`` head comes from the request's scope, so a branch never reads
another branch's listings and invalidation can target exactly one scope.
Redis is an accelerator only: when it is down, calls go straight through.
"""

import functools
import hashlib
import json
import logging
from datetime import date, datetime
from typing import Any, Callable, Optional

import redis.asyncio as redis

from gestock.config import settings
from gestock.scope import Scope, _scope_ctx

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None

_SIMPLE_TYPES = (int, str, bool, float, type(None))


async def get_redis() -> redis.Redis:
    """Shared client, created on first use."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def cache_key(**params) -> str:
    """md5 of the sorted keyword arguments; ``"default"`` when there are none."""
    if not params:
        return "default"
    payload = json.dumps(params, sort_keys=True)
    return hashlib.md5(payload.encode()).hexdigest()


def scope_prefix(scope: Scope | None) -> str:
    return f"s:{scope.label}:" if scope else ""


def _key_params(kwargs: dict[str, Any]) -> dict[str, Any]:
    # Dependencies (stores, caches, scopes) are skipped: only plain query values key the entry.
    params = {}
    for name, value in kwargs.items():
        if name.startswith("_"):
            continue
        if isinstance(value, _SIMPLE_TYPES):
            params[name] = value
        elif isinstance(value, (date, datetime)):
            params[name] = value.isoformat()
    return params


def _to_json(result: Any) -> str:
    if hasattr(result, "model_dump"):
        result = result.model_dump(mode="json")
    elif isinstance(result, list):
        result = [r.model_dump(mode="json") if hasattr(r, "model_dump") else r for r in result]
    return json.dumps(result, default=str)


def cached(ttl: int = 300, prefix: str = "cache"):
    """Cache an async listing in Redis under the current scope.

    Hits come back as decoded JSON, so routes should declare a
    ``response_model`` that accepts plain dicts.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            key = (
                f"{scope_prefix(_scope_ctx.get())}{prefix}:"
                f"{func.__name__}:{cache_key(**_key_params(kwargs))}"
            )

            try:
                client = await get_redis()
                hit = await client.get(key)
            except redis.RedisError as e:
                logger.warning(f"Redis unavailable, serving {func.__name__} uncached: {e}")
                return await func(*args, **kwargs)

            if hit:
                logger.debug(f"Cache HIT: {key}")
                return json.loads(hit)

            logger.debug(f"Cache MISS: {key}")
            result = await func(*args, **kwargs)
            try:
                await client.setex(key, ttl, _to_json(result))
            except redis.RedisError as e:
                logger.warning(f"Could not store {key}: {e}")
            return result

        return wrapper

    return decorator


async def invalidate_cache(pattern: str, scope: Scope | None = None) -> int:
    """Delete the keys matching ``pattern`` inside one scope.

    ``scope`` defaults to the request's scope; with neither the pattern is
    matched unprefixed.  Returns the number of keys removed (0 when Redis
    is unreachable).
    """
    target = f"{scope_prefix(scope or _scope_ctx.get())}{pattern}"
    try:
        client = await get_redis()
        stale = [key async for key in client.scan_iter(match=target)]
        if stale:
            await client.delete(*stale)
            logger.info(f"Invalidated {len(stale)} cache keys matching {target}")
        return len(stale)
    except redis.RedisError as e:
        logger.warning(f"Cache invalidation skipped for {target}: {e}")
        return 0
