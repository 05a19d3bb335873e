"""
Redis caching service for class listings.

CACHING STRATEGY
================

What we cache:
  - Class listing responses (paginated, JSON-serialized)
  - Cache key pattern: "classes:list:page={page}&size={size}&upcoming={upcoming}"

Invalidation strategy:
  - On booking, cancellation, promotion, attendance: delete all class list keys
    (available_seats changes)
  - On class creation or cancellation: delete all class list keys
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  All class list keys start with "classes:list:" so we SCAN and delete them.

Not cached:
  - Class detail. The booking flow and the detail view need live seat
    counts; a stale count is only a hint, never a reservation.

Redis is optional. When it is disabled or unreachable every call degrades to
a cache miss and the listing is served from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

CLASS_LIST_PREFIX = "classes:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except (redis.RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_class_list_key(page: int, page_size: int, upcoming_only: bool) -> str:
    return f"{CLASS_LIST_PREFIX}page={page}&size={page_size}&upcoming={upcoming_only}"


async def get_cached_classes(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    """Retrieve cached class list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_class_list_key(page, page_size, upcoming_only)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_classes(
    page: int,
    page_size: int,
    upcoming_only: bool,
    data: dict,
) -> None:
    """Cache class list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_class_list_key(page, page_size, upcoming_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_class_cache() -> None:
    """
    Invalidate all cached class listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{CLASS_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        "keys": keyspace,
    }
