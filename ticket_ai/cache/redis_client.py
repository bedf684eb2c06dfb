"""
Redis Client Management
Handles the optional Redis connection backing pending-action storage
"""

import redis
from typing import Dict, Optional
from loguru import logger

from ..config import settings

# Only live connections are kept; a failed connect is retried on the next call
_clients: Dict[str, redis.Redis] = {}


def get_redis_client(url: Optional[str] = None) -> Optional[redis.Redis]:
    """
    Get Redis client singleton

    Args:
        url: Redis URL (default: settings.REDIS_URL)

    Returns:
        redis.Redis, or None when no URL is configured or Redis is unreachable
    """
    url = url or settings.REDIS_URL
    if not url:
        logger.info("REDIS_URL not set, pending actions kept in memory")
        return None

    if url in _clients:
        return _clients[url]

    try:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5
        )

        # Test connection
        client.ping()

        logger.info(f"Redis connected: {url}")
        _clients[url] = client
        return client

    except redis.ConnectionError as e:
        logger.error(f"Failed to connect to Redis: {e}")
        logger.warning("Redis is not available, pending actions kept in memory")
        return None
