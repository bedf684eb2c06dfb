"""
Knowledge Statistics

Pure aggregations over the raw events/tickets collections. Every figure is
recomputed from the collections passed in, so two calls with the same
inputs and the same `now` return identical stats.

Event lifecycle (relative to `now`):
- upcoming: schedule.startDate > now
- past:     schedule.endDate < now
- active:   startDate <= now <= endDate

A missing or unparseable date is treated as the Unix epoch.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..schemas.ai_schemas import KnowledgeStats


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

POPULAR_CATEGORY_LIMIT = 3

REVENUE_PERIODS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "quarter": timedelta(days=90),
    "year": timedelta(days=365),
}


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO date/datetime from the data API into an aware UTC datetime"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return EPOCH
    else:
        return EPOCH

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def event_start(event: Dict[str, Any]) -> datetime:
    return parse_datetime((event.get("schedule") or {}).get("startDate"))


def event_end(event: Dict[str, Any]) -> datetime:
    return parse_datetime((event.get("schedule") or {}).get("endDate"))


def is_upcoming(event: Dict[str, Any], now: datetime) -> bool:
    return event_start(event) > now


def is_past(event: Dict[str, Any], now: datetime) -> bool:
    return event_end(event) < now


def is_active(event: Dict[str, Any], now: datetime) -> bool:
    return event_start(event) <= now <= event_end(event)


def available_seats(event: Dict[str, Any]) -> Optional[int]:
    """Remaining capacity, or None when the event does not report one"""
    capacity = event.get("capacity") or {}
    available = capacity.get("available")
    if isinstance(available, (int, float)):
        return int(available)
    return None


def has_capacity(event: Dict[str, Any]) -> bool:
    available = available_seats(event)
    return available is None or available > 0


def ticket_revenue(ticket: Dict[str, Any]) -> float:
    """totalAmount when present, otherwise the unit price"""
    return float(ticket.get("totalAmount") or ticket.get("price") or 0)


def popular_categories(events: Sequence[Dict[str, Any]],
                       limit: int = POPULAR_CATEGORY_LIMIT) -> List[str]:
    """Top categories by event count; ties keep first-seen order"""
    counts: Dict[str, int] = {}
    for event in events:
        category = event.get("category")
        if category:
            counts[category] = counts.get(category, 0) + 1

    # sorted() is stable and dicts keep insertion order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [category for category, _ in ranked[:limit]]


def compute_stats(events: Sequence[Dict[str, Any]],
                  tickets: Sequence[Dict[str, Any]],
                  now: datetime) -> KnowledgeStats:
    """
    Derive KnowledgeStats from the current collections.

    Args:
        events: Full events collection
        tickets: Full tickets collection
        now: Reference time (aware UTC)

    Returns:
        KnowledgeStats
    """
    prices = [float(t.get("price")) for t in tickets
              if isinstance(t.get("price"), (int, float)) and t.get("price") > 0]

    return KnowledgeStats(
        totalEvents=len(events),
        activeEvents=sum(1 for e in events if is_active(e, now)),
        upcomingEvents=sum(1 for e in events if is_upcoming(e, now)),
        pastEvents=sum(1 for e in events if is_past(e, now)),
        totalTickets=len(tickets),
        totalRevenue=sum(ticket_revenue(t) for t in tickets),
        averageTicketPrice=(sum(prices) / len(prices)) if prices else 0,
        popularCategories=popular_categories(events),
    )


def compute_revenue_stats(tickets: Sequence[Dict[str, Any]], now: datetime,
                          period: str = "month") -> Dict[str, Any]:
    """Revenue for the current period compared with the one before it"""
    period = (period or "month").lower()
    span = REVENUE_PERIODS.get(period, REVENUE_PERIODS["month"])
    start = now - span
    previous_start = start - span

    current = [t for t in tickets if start <= parse_datetime(t.get("purchaseDate")) <= now]
    previous = [t for t in tickets if previous_start <= parse_datetime(t.get("purchaseDate")) < start]

    current_revenue = sum(ticket_revenue(t) for t in current)
    previous_revenue = sum(ticket_revenue(t) for t in previous)

    if previous_revenue > 0:
        growth = (current_revenue - previous_revenue) / previous_revenue * 100
    else:
        growth = 100 if current_revenue > 0 else 0

    return {
        "period": period,
        "totalRevenue": current_revenue,
        "previousPeriod": previous_revenue,
        "growth": round(growth, 2),
        "transactionCount": len(current),
        "averageTransactionValue": round(current_revenue / len(current), 2) if current else 0,
    }


def compute_system_stats(events: Sequence[Dict[str, Any]],
                         tickets: Sequence[Dict[str, Any]],
                         now: datetime) -> Dict[str, Any]:
    """System-wide figures shown to admins only"""
    registered = sum(int((e.get("capacity") or {}).get("registered") or 0) for e in events)
    statuses = [t.get("status") for t in tickets]
    revenue = compute_revenue_stats(tickets, now)

    return {
        "totalEvents": len(events),
        "activeEvents": sum(1 for e in events if is_upcoming(e, now) and e.get("status") == "active"),
        "totalTickets": len(tickets),
        "totalRevenue": sum(ticket_revenue(t) for t in tickets),
        "totalUsers": registered,
        # No login telemetry; active users are estimated from registrations
        "activeUsers": int(registered * 0.3),
        "completedBookings": statuses.count("confirmed"),
        "canceledBookings": statuses.count("cancelled"),
        "pendingBookings": statuses.count("pending"),
        "revenueGrowth": revenue["growth"],
        "lastUpdated": now.isoformat(),
    }
