"""
Cache Module
In-process TTL cache for search results, plus the Redis client used for
session-scoped pending actions
"""

from .ttl_cache import CacheEntry, TTLCache, run_periodic_sweep, DEFAULT_TTL_SECONDS
from .redis_client import get_redis_client

__all__ = [
    "CacheEntry",
    "TTLCache",
    "run_periodic_sweep",
    "DEFAULT_TTL_SECONDS",
    "get_redis_client"
]
