"""Redis store for response caching.

Only public, identity-independent payloads are cached here (nearby commerce
pages). Personalized feeds and anything derived from credentials never are.

TTL policies:
- Nearby commerce pages: ~60 seconds (matches the public Cache-Control header)
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from nearby_offers.settings import get_settings

# Key prefixes
PREFIX_NEARBY = "nearby:"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds.
    """
    await _get_redis().setex(key, ttl, value)


async def cache_get_json(key: str) -> dict[str, Any] | None:
    """Get JSON value from cache."""
    value = await cache_get(key)
    if value:
        return json.loads(value)
    return None


async def cache_set_json(key: str, value: dict[str, Any], ttl: int) -> None:
    """Set JSON value in cache."""
    await cache_set(key, json.dumps(value), ttl)


# ============================================================
# Nearby pages
# ============================================================


def nearby_cache_key(variant: str, lat: float, long: float, page: int, page_size: int) -> str:
    """Build the cache key for one nearby page.

    Coordinates are keyed with their full repr so two different centers never
    share an entry.
    """
    return f"{PREFIX_NEARBY}{variant}:{lat!r}:{long!r}:{page}:{page_size}"


async def get_nearby_cache(key: str) -> dict[str, Any] | None:
    """Get a cached nearby page, or None on miss / Redis unavailable."""
    try:
        return await cache_get_json(key)
    except RuntimeError:
        # Redis not initialized (tests / minimal local env).
        return None
    except (redis.RedisError, json.JSONDecodeError):
        logger.warning("Nearby cache read failed for %s", key)
        return None


async def set_nearby_cache(key: str, payload: dict[str, Any], ttl: int) -> None:
    """Cache a nearby page; failures are logged and ignored."""
    if ttl <= 0:
        return
    try:
        await cache_set_json(key, payload, ttl)
    except RuntimeError:
        return
    except redis.RedisError:
        logger.warning("Nearby cache write failed for %s", key)
