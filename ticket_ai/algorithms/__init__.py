"""
Algorithms Module
Derived statistics over the storefront's events and tickets
"""

from .knowledge_stats import (
    compute_stats,
    compute_system_stats,
    compute_revenue_stats,
    popular_categories,
    parse_datetime,
    is_upcoming,
    is_past,
    is_active,
    has_capacity,
    available_seats
)

__all__ = [
    "compute_stats",
    "compute_system_stats",
    "compute_revenue_stats",
    "popular_categories",
    "parse_datetime",
    "is_upcoming",
    "is_past",
    "is_active",
    "has_capacity",
    "available_seats"
]
