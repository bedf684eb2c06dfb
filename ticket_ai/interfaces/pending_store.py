"""
Pending Action Store
Single-slot, session-scoped storage for a navigation awaiting confirmation
"""

import json
import time
from typing import Any, Callable, Dict, Optional, Tuple

import redis
from loguru import logger


class PendingActionStore:
    """
    One pending action per session, overwritten wholesale on set and
    removed on consumption. Redis-backed when a client is supplied,
    otherwise kept in process memory.

    The in-memory slot also serves as the fallback while Redis is failing.
    It holds only a write Redis did not accept, and it expires on the same
    TTL as the Redis key.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl_seconds: int = 3600,
                 clock: Callable[[], float] = time.time):
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._memory_store: Dict[str, Tuple[str, float]] = {}

    def _get_key(self, session_id: str) -> str:
        return f"pending_action:{session_id}"

    def set(self, session_id: str, action: Dict[str, Any]):
        blob = json.dumps(action)
        if self.redis_client is not None:
            try:
                self.redis_client.setex(self._get_key(session_id), self.ttl_seconds, blob)
                self._memory_store.pop(session_id, None)
                return
            except redis.RedisError as e:
                logger.error(f"Redis save error: {e}")
        self._memory_store[session_id] = (blob, self.clock() + self.ttl_seconds)

    def _memory_get(self, session_id: str) -> Optional[str]:
        entry = self._memory_store.get(session_id)
        if entry is None:
            return None
        blob, expires_at = entry
        if self.clock() >= expires_at:
            del self._memory_store[session_id]
            return None
        return blob

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        blob = None
        if self.redis_client is not None:
            try:
                blob = self.redis_client.get(self._get_key(session_id))
            except redis.RedisError as e:
                logger.error(f"Redis get error: {e}")
        if blob is None:
            blob = self._memory_get(session_id)
        if blob is None:
            return None
        try:
            return json.loads(blob)
        except ValueError:
            logger.warning(f"Discarding unreadable pending action for session {session_id}")
            self.clear(session_id)
            return None

    def clear(self, session_id: str):
        if self.redis_client is not None:
            try:
                self.redis_client.delete(self._get_key(session_id))
            except redis.RedisError as e:
                logger.error(f"Redis delete error: {e}")
        self._memory_store.pop(session_id, None)

    def pop(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Read and clear in one step"""
        action = self.get(session_id)
        if action is not None:
            self.clear(session_id)
        return action
