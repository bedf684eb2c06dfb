"""
Unit tests for the pending navigation store.

Run with: pytest tests/test_pending_store.py -v
"""

import redis

from ticket_ai.cache import redis_client
from ticket_ai.interfaces.pending_store import PendingActionStore


class FlakyRedis:
    """Stands in for a Redis client whose connection has dropped"""

    def setex(self, *args):
        raise redis.ConnectionError("connection refused")

    def get(self, *args):
        raise redis.ConnectionError("connection refused")

    def delete(self, *args):
        raise redis.ConnectionError("connection refused")


class DictRedis:
    """Minimal setex/get/delete over a dict"""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        self.data.pop(key, None)


class TestPendingActionStore:
    """Test the single pending slot per session."""

    def test_set_get_clear(self):
        store = PendingActionStore()
        store.set("s1", {"url": "/events/evt-jazz"})

        assert store.get("s1") == {"url": "/events/evt-jazz"}
        store.clear("s1")
        assert store.get("s1") is None

    def test_set_overwrites(self):
        store = PendingActionStore()
        store.set("s1", {"url": "/a"})
        store.set("s1", {"url": "/b"})

        assert store.get("s1") == {"url": "/b"}

    def test_pop_consumes(self):
        store = PendingActionStore()
        store.set("s1", {"url": "/a"})

        assert store.pop("s1") == {"url": "/a"}
        assert store.pop("s1") is None

    def test_sessions_are_isolated(self):
        store = PendingActionStore()
        store.set("s1", {"url": "/a"})
        assert store.get("s2") is None

    def test_redis_backed(self):
        client = DictRedis()
        store = PendingActionStore(client, ttl_seconds=60)
        store.set("s1", {"url": "/a"})

        assert "pending_action:s1" in client.data
        assert client.ttls["pending_action:s1"] == 60
        assert store.pop("s1") == {"url": "/a"}
        assert client.data == {}

    def test_redis_failure_falls_back_to_memory(self):
        store = PendingActionStore(FlakyRedis())
        store.set("s1", {"url": "/a"})

        assert store.get("s1") == {"url": "/a"}

    def test_unreadable_blob_is_discarded(self):
        client = DictRedis()
        client.data["pending_action:s1"] = "{not json"
        store = PendingActionStore(client)

        assert store.get("s1") is None
        assert client.data == {}

    def test_memory_fallback_expires(self):
        now = [1000.0]
        store = PendingActionStore(FlakyRedis(), ttl_seconds=60, clock=lambda: now[0])
        store.set("s1", {"url": "/a"})

        now[0] += 61
        assert store.get("s1") is None

    def test_redis_write_supersedes_memory_fallback(self):
        client = DictRedis()
        store = PendingActionStore(FlakyRedis())
        store.set("s1", {"url": "/old"})

        store.redis_client = client
        store.set("s1", {"url": "/new"})
        # Redis key expired
        client.data.clear()

        assert store.get("s1") is None


class TestRedisClient:
    """Test the shared Redis connection."""

    def test_no_url(self, monkeypatch):
        monkeypatch.setattr(redis_client.settings, "REDIS_URL", "")
        assert redis_client.get_redis_client() is None

    def test_failed_connect_is_retried(self, monkeypatch):
        attempts = []

        class Client:
            def ping(self):
                attempts.append(1)
                if len(attempts) == 1:
                    raise redis.ConnectionError("connection refused")
                return True

        monkeypatch.setattr(redis.Redis, "from_url", lambda url, **kwargs: Client())
        monkeypatch.setattr(redis_client, "_clients", {})

        assert redis_client.get_redis_client("redis://cache:6379/0") is None
        connected = redis_client.get_redis_client("redis://cache:6379/0")

        assert connected is not None
        assert redis_client.get_redis_client("redis://cache:6379/0") is connected
        assert len(attempts) == 2
