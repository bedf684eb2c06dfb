# interfaces/__init__.py
"""
Interfaces Package

Contains data access and session state:
- data_interface: Storefront Data API contract + httpx client
- session_memory: Per-session knowledge (collections, search cache)
- knowledge_sync: Age-threshold refresh of session memory
- session_store: Reducer-driven conversation state
- pending_store: Single-slot pending navigation storage
"""

from .data_interface import DataAPI, HttpDataAPI
from .session_memory import SessionMemory
from .knowledge_sync import KnowledgeSynchronizer
from .session_store import SessionState, reduce, conversation_window
from .pending_store import PendingActionStore

__all__ = [
    "DataAPI",
    "HttpDataAPI",
    "SessionMemory",
    "KnowledgeSynchronizer",
    "SessionState",
    "reduce",
    "conversation_window",
    "PendingActionStore"
]
