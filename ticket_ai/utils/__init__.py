"""
Utilities Module
Helper functions for the assistant
"""

from .ai_helpers import (
    format_price,
    search_cache_key,
    event_matches,
    find_event_by_title,
    find_event_by_id,
    is_bookable,
    bookable_events,
    ticket_options,
    contextual_suggestions
)

__all__ = [
    "format_price",
    "search_cache_key",
    "event_matches",
    "find_event_by_title",
    "find_event_by_id",
    "is_bookable",
    "bookable_events",
    "ticket_options",
    "contextual_suggestions"
]
