"""
AI Helper Utilities
Event matching, ticket options and suggestion chips for the assistant
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..algorithms.knowledge_stats import event_start, has_capacity, is_upcoming
from ..config import settings
from ..llm.prompts import TICKET_TYPE_LABELS
from ..schemas.ai_schemas import CurrentUser, KnowledgeSnapshot, TicketOption


def format_price(price: float, currency: str = "บาท") -> str:
    """
    Format a price for chat output

    Example:
        >>> format_price(1500)
        '1,500 บาท'
        >>> format_price(0)
        'ฟรี'
    """
    if price == 0:
        return "ฟรี"
    return f"{price:,.0f} {currency}"


def search_cache_key(kind: str, query: str = "") -> str:
    """
    Stable cache key for a search

    Example:
        >>> search_cache_key("search", " Jazz ")
        'search:jazz'
    """
    return f"{kind}:{query.strip().lower()}"


def event_matches(event: Dict[str, Any], query: str) -> bool:
    """Case-insensitive match on title, description, category or tags"""
    needle = query.strip().lower()
    if not needle:
        return True

    haystack = [
        event.get("title") or "",
        event.get("description") or "",
        event.get("category") or "",
    ] + list(event.get("tags") or [])

    return any(needle in str(field).lower() for field in haystack)


def find_event_by_title(events: Sequence[Dict[str, Any]], title: Optional[str]) -> Optional[Dict[str, Any]]:
    """Exact title first, then the first title either containing or contained by `title`"""
    if not title:
        return None
    wanted = title.strip().lower()

    valid = [e for e in events if isinstance(e.get("title"), str) and e.get("id")]
    for event in valid:
        if event["title"].lower() == wanted:
            return event
    for event in valid:
        name = event["title"].lower()
        if wanted in name or name in wanted:
            return event
    return None


def find_event_by_id(events: Sequence[Dict[str, Any]], event_id: Any) -> Optional[Dict[str, Any]]:
    return next((e for e in events if e.get("id") == event_id), None)


def is_bookable(event: Dict[str, Any], now: datetime) -> bool:
    """Not started yet and seats remaining"""
    return is_upcoming(event, now) and has_capacity(event)


def bookable_events(events: Sequence[Dict[str, Any]], now: datetime,
                    limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Bookable events, soonest first"""
    result = sorted((e for e in events if is_bookable(e, now)), key=event_start)
    return result[:limit] if limit is not None else result


def ticket_options(event: Dict[str, Any]) -> List[TicketOption]:
    """
    Sellable ticket types for an event, cheapest first

    Only known pricing keys are offered. A zero price is only sellable
    as the "free" type.

    Example:
        >>> opts = ticket_options({"pricing": {"currency": "THB", "vip": 2000, "regular": 800, "vvip": 5000}})
        >>> [(o.type, o.price) for o in opts]
        [('regular', 800.0), ('vip', 2000.0)]
    """
    options = []
    for key, price in (event.get("pricing") or {}).items():
        if key not in TICKET_TYPE_LABELS:
            continue
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            continue
        if price > 0 or (price == 0 and key == "free"):
            options.append(TicketOption(type=key, label=TICKET_TYPE_LABELS[key], price=price))

    return sorted(options, key=lambda option: option.price)


def contextual_suggestions(snapshot: KnowledgeSnapshot, user: Optional[CurrentUser],
                           now: datetime, limit: Optional[int] = None) -> List[str]:
    """Suggestion chips derived from what the session currently knows"""
    limit = limit or settings.MAX_SUGGESTIONS
    suggestions: List[str] = []

    if snapshot.events:
        suggestions.append("ดูอีเว้นท์ทั้งหมด")
        if any(is_upcoming(e, now) for e in snapshot.events):
            suggestions.append("อีเว้นท์ที่กำลังจะมาถึง")

    if snapshot.categories:
        suggestions.append("ดูหมวดหมู่อีเว้นท์")

    if user is not None:
        suggestions.append("ดูตั๋วของฉัน")
        if user.is_admin:
            suggestions.append("ดูสถิติระบบ")

    if len(suggestions) < 3:
        suggestions.extend(["ช่วยเหลือ", "ค้นหาข้อมูล", "ติดต่อสอบถาม"])

    return suggestions[:limit]
