"""
Pydantic Schemas Package

Contains all Pydantic v2 models for:
- Chat messages and actions
- Knowledge snapshot and statistics
- API requests/responses
"""

from .ai_schemas import (
    # Enums
    MessageRole, UserRole, Resource, IntentType, ActionType,
    # Conversation
    CurrentUser, AIAction, ChatMessage, AIResponse, Intent, TicketOption,
    # Knowledge
    KnowledgeStats, KnowledgeSnapshot, RefreshResult, GenerationResult,
    # API
    ChatRequest, ChatResponse, SessionView, RefreshResponse, HealthResponse
)

__all__ = [
    # Enums
    "MessageRole", "UserRole", "Resource", "IntentType", "ActionType",
    # Conversation
    "CurrentUser", "AIAction", "ChatMessage", "AIResponse", "Intent", "TicketOption",
    # Knowledge
    "KnowledgeStats", "KnowledgeSnapshot", "RefreshResult", "GenerationResult",
    # API
    "ChatRequest", "ChatResponse", "SessionView", "RefreshResponse", "HealthResponse"
]
