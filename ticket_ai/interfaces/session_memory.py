"""
Session Memory
What one chat session currently knows: collections, search cache,
preferences and per-resource fetch times. One instance per session.
"""

import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..algorithms.knowledge_stats import compute_stats
from ..cache.ttl_cache import TTLCache, DEFAULT_TTL_SECONDS
from ..schemas.ai_schemas import KnowledgeSnapshot, KnowledgeStats, Resource, CurrentUser

RECENT_SEARCH_LIMIT = 10


class SessionMemory:
    """
    Mutable knowledge owned by a single session.

    Collections change only through update_resource(), which replaces the
    collection wholesale and recomputes the derived stats. Search results
    change only through cache_search_result().
    """

    def __init__(self, search_ttl: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.events: List[Dict[str, Any]] = []
        self.categories: List[Dict[str, Any]] = []
        self.tickets: List[Dict[str, Any]] = []
        self.tickets_owner: Optional[str] = None
        self.admin_stats: Optional[Dict[str, Any]] = None
        self.stats = KnowledgeStats()
        self.search_results = TTLCache(default_ttl=search_ttl, clock=clock)
        self.user_preferences: Dict[str, List[Any]] = {
            "favoriteCategories": [],
            "recentSearches": [],
            "bookingHistory": [],
        }
        self.last_fetch_time: Dict[Resource, datetime] = {}
        self._lock = threading.RLock()

    def update_resource(self, resource: Resource, data: Any, now: datetime,
                        owner: Optional[str] = None):
        """Replace one collection in full, stamp its fetch time, recompute stats"""
        with self._lock:
            if resource == Resource.SYSTEM_STATS:
                self.admin_stats = dict(data)
            else:
                setattr(self, resource.value, list(data))
            if resource == Resource.TICKETS:
                self.tickets_owner = owner
            self.last_fetch_time[resource] = now
            self.stats = compute_stats(self.events, self.tickets, now)

    def tickets_belong_to(self, user_id: Optional[str]) -> bool:
        return self.tickets_owner is not None and self.tickets_owner == user_id

    def forget_tickets(self, now: datetime):
        """Drop the tickets of a caller who is no longer present"""
        with self._lock:
            if not self.tickets and self.tickets_owner is None:
                return
            self.tickets = []
            self.tickets_owner = None
            self.last_fetch_time.pop(Resource.TICKETS, None)
            self.stats = compute_stats(self.events, self.tickets, now)

    def cache_search_result(self, key: str, results: List[Any], ttl: Optional[float] = None):
        self.search_results.put(key, results, ttl)

    def get_cached_search_result(self, key: str) -> Tuple[Optional[List[Any]], bool]:
        return self.search_results.get(key)

    def clear_expired_cache(self) -> int:
        return self.search_results.sweep()

    def record_search(self, query: str):
        """Most recent first, de-duplicated, bounded"""
        query = query.strip()
        if not query:
            return
        with self._lock:
            recent = [q for q in self.user_preferences["recentSearches"] if q != query]
            self.user_preferences["recentSearches"] = [query] + recent[:RECENT_SEARCH_LIMIT - 1]

    def record_booking(self, event_id: str, ticket_type: str, now: datetime):
        with self._lock:
            self.user_preferences["bookingHistory"].append({
                "eventId": event_id,
                "ticketType": ticket_type,
                "at": now.isoformat(),
            })

    def age(self, resource: Resource, now: datetime) -> Optional[float]:
        """Seconds since the last successful fetch, None if never fetched"""
        fetched = self.last_fetch_time.get(resource)
        if fetched is None:
            return None
        return (now - fetched).total_seconds()

    def snapshot(self, user: Optional[CurrentUser] = None) -> KnowledgeSnapshot:
        with self._lock:
            return KnowledgeSnapshot(
                events=list(self.events),
                categories=list(self.categories),
                tickets=list(self.tickets),
                stats=self.stats.model_copy(deep=True),
                admin_stats=dict(self.admin_stats) if (self.admin_stats and user and user.is_admin) else None,
            )
