"""Redis cache utility functions."""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any

import redis

logger = logging.getLogger(__name__)

# Key pattern for the cached per-blog engagement summary
BLOG_STATS_KEY = "blog_stats:{blog_id}"

# Seconds to wait before trying to reconnect after a failed connection
RECONNECT_BACKOFF_SECONDS = 30

_redis_client: redis.Redis | None = None
_last_failure: float | None = None


def get_redis_client() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns None if REDIS_URL is not configured or the connection fails.
    Callers treat None as "no cache" and fall through to the database.
    """
    global _redis_client, _last_failure

    if _redis_client is not None:
        return _redis_client

    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return None

    if _last_failure is not None and time.monotonic() - _last_failure < RECONNECT_BACKOFF_SECONDS:
        return None

    try:
        client = redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=1)
        # Test connection
        client.ping()
        logger.info("Redis cache connected successfully")
        _redis_client = client
        _last_failure = None
        return _redis_client
    except Exception as e:
        _last_failure = time.monotonic()
        logger.warning(f"Redis cache unavailable: {e}. Continuing without cache.")
        return None


def cache_get(key: str) -> Any | None:
    """
    Retrieve a cached value by key.

    Returns:
        Cached value if found, None otherwise
    """
    client = get_redis_client()
    if not client:
        return None

    try:
        value = client.get(key)
        if value is None:
            return None

        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value
    except Exception as e:
        logger.warning(f"Cache get error for key '{key}': {e}")
        return None


def cache_set(key: str, value: Any, ttl: int = 300) -> bool:
    """
    Set a cached value with TTL.

    Args:
        key: Cache key
        value: Value to cache (JSON-serialized if dict/list)
        ttl: Time to live in seconds (default: 300 = 5 minutes)

    Returns:
        True if successful, False otherwise
    """
    client = get_redis_client()
    if not client:
        return False

    try:
        if isinstance(value, (dict, list)):
            serialized = json.dumps(value, default=str)
        else:
            serialized = str(value)

        client.setex(key, ttl, serialized)
        return True
    except Exception as e:
        logger.warning(f"Cache set error for key '{key}': {e}")
        return False


def cache_delete(key: str) -> bool:
    """Delete a specific cache key. Returns True if a key was removed."""
    client = get_redis_client()
    if not client:
        return False

    try:
        return bool(client.delete(key))
    except Exception as e:
        logger.warning(f"Cache delete error for key '{key}': {e}")
        return False


def invalidate_blog_stats(blog_id: int) -> None:
    """Drop the cached engagement summary for a blog after its counters change."""
    cache_delete(BLOG_STATS_KEY.format(blog_id=blog_id))
